"""
Redis Status Cache

Production cache shared by every API worker, so an admin write invalidates
the maintenance status for all of them at once.
Used when ENV_MODE=production or ENV_MODE=staging.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from canteen_gate.core.config import get_settings
from canteen_gate.services.cache.base import BaseStatusCache

logger = logging.getLogger(__name__)


class RedisStatusCache(BaseStatusCache):
    """
    Redis-backed status cache.

    Keys are namespaced under ``canteen:``. Redis errors propagate as
    ``RedisError``; the rule store decides how to degrade.
    """

    KEY_PREFIX = "canteen:"

    def __init__(self, url: Optional[str] = None):
        settings = get_settings()
        self._client = aioredis.from_url(
            url or settings.redis_url,
            decode_responses=True,
            socket_timeout=2,
        )
        logger.info("RedisStatusCache initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(self._key(key), value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
