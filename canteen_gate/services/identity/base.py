"""
Identity Provider Abstract Base Class

The canteen app authenticates users elsewhere (Firebase); this service only
reads the already-established identity to decide maintenance gating.
Both MockIdentityProvider and RemoteIdentityProvider implement this contract.
"""

from abc import ABC, abstractmethod
from typing import Optional

from canteen_gate.core.config import get_settings
from canteen_gate.schemas import CandidateUser


class IdentityLookupError(Exception):
    """Raised when the identity provider cannot answer a lookup."""


class BaseIdentityProvider(ABC):
    """Abstract base class for identity providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., "mock", "remote")."""
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[CandidateUser]:
        """
        Look up a signed-in user.

        Args:
            user_id: Identity provider user id

        Returns:
            CandidateUser, or None when the user does not exist

        Raises:
            IdentityLookupError: The provider could not be reached
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check provider connectivity."""
        pass

    async def close(self) -> None:
        return None

    @staticmethod
    def apply_admin_flag(user: CandidateUser) -> CandidateUser:
        """Flag configured admin roles as administrators."""
        if user.is_admin:
            return user
        admin_roles = get_settings().admin_roles_list
        if user.role.strip().lower() in admin_roles:
            return user.model_copy(update={"is_admin": True})
        return user
