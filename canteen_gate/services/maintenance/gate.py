"""
Maintenance Gate

Enforcement point for protected screens and routes. Two states:

    OPEN     - the protected content is served
    BLOCKED  - a full-screen maintenance notice replaces it

The gate keeps the last fetched maintenance rule and re-reads it on a fixed
polling interval and whenever an evaluation finds the copy stale, so a rule
flip reaches already-open sessions within one interval.

If the rule cannot be fetched the gate fails open: a transient outage must
never lock every user out.

Usage:
    gate = MaintenanceGate(fetch_rule=api_client.get_rule)
    gate.start()
    decision = await gate.evaluate(user, allow_admin_access=True)
    if decision.blocked:
        render(decision.notice)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from canteen_gate.core.config import get_settings
from canteen_gate.schemas import CandidateUser, MaintenanceNotice, MaintenanceRule
from canteen_gate.services.maintenance.evaluator import is_blocked

logger = logging.getLogger(__name__)

RuleFetcher = Callable[[], Awaitable[MaintenanceRule]]


class GateState(str, Enum):
    OPEN = "open"
    BLOCKED = "blocked"


class GateReason(str, Enum):
    """Why the gate settled on its state."""
    STATUS_UNAVAILABLE = "status-unavailable"
    ANONYMOUS = "anonymous"
    INACTIVE = "inactive"
    ADMIN_BYPASS = "admin-bypass"
    NOT_TARGETED = "not-targeted"
    TARGETED = "targeted"


@dataclass
class GateDecision:
    """
    Outcome of one gate evaluation.

    Attributes:
        state: OPEN or BLOCKED
        reason: Why the state was chosen
        notice: Maintenance notice to render (BLOCKED only)
    """
    state: GateState
    reason: GateReason
    notice: Optional[MaintenanceNotice] = None

    @property
    def blocked(self) -> bool:
        return self.state == GateState.BLOCKED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "reason": self.reason.value,
            "notice": self.notice.model_dump(by_alias=True) if self.notice else None,
        }


def decide(
    rule: Optional[MaintenanceRule],
    user: Optional[CandidateUser],
    allow_admin_access: bool = False,
) -> GateDecision:
    """
    Pure gate transition for one evaluation cycle.

    Args:
        rule: Current rule, or None when it could not be fetched
        user: Signed-in user, or None when nobody is signed in
        allow_admin_access: Whether the call site lets admins through

    Returns:
        GateDecision
    """
    if rule is None:
        return GateDecision(GateState.OPEN, GateReason.STATUS_UNAVAILABLE)
    if user is None:
        # Authentication is handled elsewhere
        return GateDecision(GateState.OPEN, GateReason.ANONYMOUS)
    if not rule.is_active:
        return GateDecision(GateState.OPEN, GateReason.INACTIVE)
    if allow_admin_access and user.is_admin:
        return GateDecision(GateState.OPEN, GateReason.ADMIN_BYPASS)
    if is_blocked(rule, user):
        return GateDecision(
            GateState.BLOCKED,
            GateReason.TARGETED,
            notice=MaintenanceNotice.from_rule(rule),
        )
    return GateDecision(GateState.OPEN, GateReason.NOT_TARGETED)


class MaintenanceGate:
    """
    Polling maintenance gate.

    Attributes:
        poll_interval: Seconds between rule refreshes
    """

    def __init__(
        self,
        fetch_rule: RuleFetcher,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_rule = fetch_rule
        if poll_interval is None:
            poll_interval = get_settings().maintenance_poll_interval_seconds
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self._clock = clock

        self._rule: Optional[MaintenanceRule] = None
        self._fetched_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def rule(self) -> Optional[MaintenanceRule]:
        """Last successfully fetched rule (None after a failed fetch)."""
        return self._rule

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at >= self.poll_interval

    async def refresh(self) -> Optional[MaintenanceRule]:
        """
        Re-read the rule.

        A failed fetch clears the cached rule so the gate fails open until
        the next successful read.
        """
        generation = self._generation
        try:
            rule = await self._fetch_rule()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                return self._rule
            if self._last_error is None:
                logger.warning(f"Maintenance status unavailable, failing open: {e}")
            else:
                logger.debug(f"Maintenance status still unavailable: {e}")
            self._rule = None
            self._last_error = str(e) or e.__class__.__name__
        else:
            if generation != self._generation:
                # Invalidated while fetching; the result may predate the change
                return self._rule
            if self._rule is None or self._rule.is_active != rule.is_active:
                logger.info(f"Maintenance status: {'ACTIVE' if rule.is_active else 'inactive'}")
            self._rule = rule
            self._last_error = None

        self._fetched_at = self._clock()
        return self._rule

    def invalidate(self) -> None:
        """Drop the cached rule; the next evaluation fetches a fresh one."""
        self._rule = None
        self._fetched_at = None
        self._generation += 1

    async def evaluate(
        self,
        user: Optional[CandidateUser],
        allow_admin_access: bool = False,
    ) -> GateDecision:
        """
        Evaluate the gate for a navigation or request.

        Refreshes the rule first when the cached copy is older than the
        polling interval.
        """
        if self.is_stale:
            await self.refresh()
        return decide(self._rule, user, allow_admin_access)

    # =========================================================================
    # POLLING
    # =========================================================================

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.refresh()

    def start(self) -> None:
        """Start background polling on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._poll_forever(), name="maintenance-poller")
        logger.info(f"Maintenance polling started (every {self.poll_interval:g}s)")

    async def stop(self) -> None:
        """Stop background polling."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Maintenance polling stopped")
