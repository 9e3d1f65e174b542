"""
Maintenance API Client

Async httpx client for the system-settings endpoints, used by remote
gates, admin tooling and the simulation script.

Usage:
    async with MaintenanceApiClient("http://localhost:8001") as api:
        rule = await api.get_rule()
        gate = MaintenanceGate(fetch_rule=api.get_rule)
"""

import logging
from typing import Any, Optional, Union

import httpx
from pydantic import ValidationError

from canteen_gate.core.config import get_settings
from canteen_gate.schemas import (
    MaintenanceRule,
    MaintenanceRuleUpdate,
    UserMaintenanceCheck,
)

logger = logging.getLogger(__name__)

SETTINGS_PATH = "/api/system-settings"


class MaintenanceApiError(Exception):
    """
    A maintenance API call failed.

    Attributes:
        status_code: HTTP status, None for transport failures
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MaintenanceApiClient:
    """Client for the maintenance endpoints of the canteen API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        user_id: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            base_url: API base URL (defaults to APP_BASE_URL)
            client: Pre-configured httpx client (tests, shared pools)
            user_id: Signed-in user sent in the user id header
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        headers = {}
        if user_id is not None:
            headers[settings.user_id_header] = str(user_id)

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=(base_url or settings.app_base_url).rstrip("/"),
            timeout=timeout,
        )
        self._headers = headers

    async def __aenter__(self) -> "MaintenanceApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(
                method, path, headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise MaintenanceApiError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text[:200]
            if isinstance(body, dict):
                detail = body.get("detail") or body.get("error")
            else:
                detail = body
            raise MaintenanceApiError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MaintenanceApiError(f"{method} {path} returned invalid JSON") from e

    async def get_rule(self) -> MaintenanceRule:
        """Fetch the current maintenance rule (public endpoint)."""
        payload = await self._request("GET", f"{SETTINGS_PATH}/maintenance-status")
        try:
            return MaintenanceRule.model_validate(payload)
        except ValidationError as e:
            raise MaintenanceApiError(f"Malformed maintenance status: {e}") from e

    async def get_user_status(
        self,
        user_id: Union[str, int],
        allow_admin_access: bool = False,
    ) -> UserMaintenanceCheck:
        """Ask the server whether a given user sees the maintenance screen."""
        payload = await self._request(
            "GET",
            f"{SETTINGS_PATH}/maintenance-status/{user_id}",
            params={"allowAdminAccess": str(allow_admin_access).lower()},
        )
        return UserMaintenanceCheck.model_validate(payload)

    async def update_rule(
        self,
        changes: Union[MaintenanceRuleUpdate, dict[str, Any]],
        updated_by: Optional[Union[str, int]] = None,
    ) -> MaintenanceRule:
        """
        Merge ``changes`` into the stored rule.

        Returns:
            MaintenanceRule: The full rule as stored by the server

        Raises:
            MaintenanceApiError: The server rejected the update
        """
        if isinstance(changes, dict):
            changes = MaintenanceRuleUpdate.model_validate(changes)

        body = changes.model_dump(by_alias=True, exclude_unset=True, mode="json")
        if updated_by is not None:
            body["updatedBy"] = str(updated_by)

        payload = await self._request("PATCH", f"{SETTINGS_PATH}/maintenance", json=body)
        try:
            return MaintenanceRule.model_validate(payload["maintenanceMode"])
        except (KeyError, TypeError, ValidationError) as e:
            raise MaintenanceApiError(f"Malformed maintenance update response: {e!r}") from e
