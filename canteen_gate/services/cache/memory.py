"""
In-Memory Status Cache

Process-local cache used in development mode and in tests.
Entries expire after their TTL; nothing is shared between processes.
"""

import time
import logging
from typing import Optional

from canteen_gate.services.cache.base import BaseStatusCache

logger = logging.getLogger(__name__)


class MemoryStatusCache(BaseStatusCache):
    """Dictionary-backed cache with per-entry expiry."""

    def __init__(self):
        self._entries: dict[str, tuple[float, str]] = {}
        logger.info("MemoryStatusCache initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def health_check(self) -> bool:
        """Memory cache is always available."""
        return True

    def clear(self) -> None:
        self._entries.clear()
