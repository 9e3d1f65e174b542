"""
Status Cache Abstract Base Class

Defines the interface for the maintenance-status cache that sits in front
of the settings database. Every client polls the maintenance rule, so reads
are served from here and writes invalidate it.
"""

from abc import ABC, abstractmethod
from typing import Optional


MAINTENANCE_STATUS_KEY = "maintenance-status"


class BaseStatusCache(ABC):
    """Abstract base class for status caches."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., "memory", "redis")."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the cached value, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop a cached value."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check cache connectivity."""
        pass

    async def close(self) -> None:
        """Release connections held by the cache."""
        return None
