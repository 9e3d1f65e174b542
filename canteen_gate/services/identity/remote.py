"""
Remote Identity Provider

Production implementation that reads user profiles from the canteen user
directory over HTTP. Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - IDENTITY_SERVICE_URL must be set in environment

Endpoint:
    GET {IDENTITY_SERVICE_URL}/api/users/{user_id} -> user profile JSON
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from canteen_gate.core.config import get_settings
from canteen_gate.schemas import CandidateUser
from canteen_gate.services.identity.base import BaseIdentityProvider, IdentityLookupError

logger = logging.getLogger(__name__)


class RemoteIdentityProvider(BaseIdentityProvider):
    """
    Identity provider backed by the user directory HTTP API.

    Example:
        >>> provider = RemoteIdentityProvider()
        >>> user = await provider.get_user("42")
        >>> user.department
        'CSE'
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the HTTP client.

        Raises:
            ValueError: If IDENTITY_SERVICE_URL is not configured
        """
        settings = get_settings()
        base_url = base_url or settings.identity_service_url

        if not base_url:
            raise ValueError(
                "IDENTITY_SERVICE_URL is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=settings.identity_timeout_seconds,
        )
        logger.info(f"RemoteIdentityProvider initialized ({base_url})")

    @property
    def provider_name(self) -> str:
        return "remote"

    async def get_user(self, user_id: str) -> Optional[CandidateUser]:
        try:
            response = await self._client.get(f"/api/users/{user_id}")
        except httpx.HTTPError as e:
            raise IdentityLookupError(f"Identity service unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise IdentityLookupError(
                f"Identity service returned {response.status_code} for user {user_id}"
            )

        try:
            user = CandidateUser.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise IdentityLookupError(f"Malformed profile for user {user_id}: {e}") from e

        if user.id is None:
            user = user.model_copy(update={"id": str(user_id)})
        return self.apply_admin_flag(user)

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Identity service health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
