"""
Status Cache Factory

Returns the in-memory or Redis status cache based on ENV_MODE.

Usage:
    from canteen_gate.services.cache import get_status_cache

    cache = get_status_cache()
    await cache.set("maintenance-status", payload, ttl_seconds=30)
"""

import logging
from functools import lru_cache

from canteen_gate.core.config import get_settings
from canteen_gate.services.cache.base import BaseStatusCache, MAINTENANCE_STATUS_KEY
from canteen_gate.services.cache.memory import MemoryStatusCache
from canteen_gate.services.cache.redis import RedisStatusCache

logger = logging.getLogger(__name__)


@lru_cache()
def get_status_cache() -> BaseStatusCache:
    """Get the configured status cache."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Status Cache: Using MemoryStatusCache (development mode)")
        return MemoryStatusCache()
    else:
        logger.info(f"Status Cache: Using RedisStatusCache ({settings.env_mode.value} mode)")
        return RedisStatusCache()


def reset_status_cache() -> None:
    """Clear the cached instance."""
    get_status_cache.cache_clear()


__all__ = [
    "get_status_cache",
    "reset_status_cache",
    "BaseStatusCache",
    "MemoryStatusCache",
    "RedisStatusCache",
    "MAINTENANCE_STATUS_KEY",
]
