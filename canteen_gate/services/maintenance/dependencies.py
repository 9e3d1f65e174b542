"""
FastAPI dependencies for maintenance gating.

Usage:
    @app.get("/api/users/me", dependencies=[Depends(require_maintenance_clearance())])
    async def me(...): ...

    # Settings screen stays reachable for admins during maintenance
    @app.patch(
        "/api/system-settings/maintenance",
        dependencies=[Depends(require_maintenance_clearance(allow_admin_access=True))],
    )
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from canteen_gate.core.config import get_settings
from canteen_gate.database import async_session_maker
from canteen_gate.schemas import CandidateUser, MaintenanceNotice, MaintenanceRule
from canteen_gate.services.cache import get_status_cache
from canteen_gate.services.identity import get_identity_provider, IdentityLookupError
from canteen_gate.services.maintenance.gate import GateDecision, MaintenanceGate
from canteen_gate.services.maintenance.store import MaintenanceRuleStore

logger = logging.getLogger(__name__)


class MaintenanceBlockedError(Exception):
    """Raised when the gate blocks the caller; rendered as HTTP 503."""

    def __init__(self, notice: MaintenanceNotice):
        super().__init__(notice.title)
        self.notice = notice


async def fetch_current_rule() -> MaintenanceRule:
    """Rule source for the in-process gate: the store, through the status cache."""
    async with async_session_maker() as session:
        store = MaintenanceRuleStore(session, get_status_cache())
        return await store.get_rule()


def build_server_gate() -> MaintenanceGate:
    return MaintenanceGate(fetch_rule=fetch_current_rule)


def get_maintenance_gate(request: Request) -> MaintenanceGate:
    return request.app.state.maintenance_gate


async def get_current_user(request: Request) -> Optional[CandidateUser]:
    """
    Resolve the signed-in user from the user id header.

    Identity lookup failures are logged and treated as "not signed in".
    """
    user_id = request.headers.get(get_settings().user_id_header)
    if not user_id:
        return None

    provider = get_identity_provider()
    try:
        user = await provider.get_user(user_id.strip())
    except IdentityLookupError as e:
        logger.warning(f"Identity lookup failed for user {user_id}: {e}")
        return None

    if user is None:
        logger.debug(f"Unknown user id {user_id}")
    return user


async def require_user(
    user: Optional[CandidateUser] = Depends(get_current_user),
) -> CandidateUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


async def require_admin(
    user: CandidateUser = Depends(require_user),
) -> CandidateUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_maintenance_clearance(allow_admin_access: bool = False):
    """
    Build a dependency that runs the maintenance gate for a route.

    Args:
        allow_admin_access: Let administrators through while maintenance is active

    Raises:
        MaintenanceBlockedError: The caller is targeted by active maintenance
    """
    async def dependency(
        user: Optional[CandidateUser] = Depends(get_current_user),
        gate: MaintenanceGate = Depends(get_maintenance_gate),
    ) -> GateDecision:
        decision = await gate.evaluate(user, allow_admin_access=allow_admin_access)
        if decision.blocked:
            logger.debug(f"Blocked user {user.id if user else '-'} ({decision.reason.value})")
            raise MaintenanceBlockedError(decision.notice)
        return decision

    return dependency
