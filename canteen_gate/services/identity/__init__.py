"""
Identity Provider Factory

Returns the mock or remote identity provider based on ENV_MODE.
"""

import logging
from functools import lru_cache

from canteen_gate.core.config import get_settings
from canteen_gate.services.identity.base import BaseIdentityProvider, IdentityLookupError
from canteen_gate.services.identity.mock import MockIdentityProvider
from canteen_gate.services.identity.remote import RemoteIdentityProvider

logger = logging.getLogger(__name__)


@lru_cache()
def get_identity_provider() -> BaseIdentityProvider:
    """Get the configured identity provider."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Identity Provider: Using MockIdentityProvider (development mode)")
        return MockIdentityProvider()
    else:
        logger.info(f"Identity Provider: Using RemoteIdentityProvider ({settings.env_mode.value} mode)")
        return RemoteIdentityProvider()


def reset_identity_provider() -> None:
    """Clear the cached provider instance."""
    get_identity_provider.cache_clear()


__all__ = [
    "get_identity_provider",
    "reset_identity_provider",
    "BaseIdentityProvider",
    "IdentityLookupError",
    "MockIdentityProvider",
    "RemoteIdentityProvider",
]
