"""
Optimistic maintenance rule editor.

Backs the admin settings screen: a change is shown immediately, then
confirmed or reverted by the server's answer.

    PENDING -> COMMITTED    server accepted; adopt its record, invalidate gates
    PENDING -> ROLLED_BACK  server rejected; restore the last confirmed rule
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union

from canteen_gate.client.api import MaintenanceApiClient, MaintenanceApiError
from canteen_gate.schemas import MaintenanceRule, MaintenanceRuleUpdate
from canteen_gate.services.maintenance.gate import MaintenanceGate

logger = logging.getLogger(__name__)

FAILURE_NOTICE = "Failed to update maintenance settings"


class EditState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class EditResult:
    """Outcome of one optimistic edit."""
    state: EditState
    rule: MaintenanceRule
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == EditState.COMMITTED


class OptimisticRuleEditor:
    """
    Local view of the maintenance rule for an admin session.

    Attributes:
        state: State of the most recent edit
    """

    def __init__(
        self,
        api: MaintenanceApiClient,
        rule: Optional[MaintenanceRule] = None,
        gates: Iterable[MaintenanceGate] = (),
    ):
        self._api = api
        self._confirmed = rule or MaintenanceRule()
        self._current = self._confirmed
        self._gates = list(gates)
        self.state = EditState.IDLE

    @property
    def current(self) -> MaintenanceRule:
        """What the admin screen shows right now (may be unconfirmed)."""
        return self._current

    @property
    def confirmed(self) -> MaintenanceRule:
        """Last rule acknowledged by the server."""
        return self._confirmed

    def watch(self, gate: MaintenanceGate) -> None:
        """Invalidate ``gate`` whenever an edit is committed."""
        self._gates.append(gate)

    async def load(self) -> MaintenanceRule:
        """Replace the local view with the server's rule."""
        rule = await self._api.get_rule()
        self._confirmed = self._current = rule
        self.state = EditState.IDLE
        return rule

    async def apply(
        self,
        changes: Union[MaintenanceRuleUpdate, dict[str, Any]],
        updated_by: Optional[Union[str, int]] = None,
    ) -> EditResult:
        """
        Apply ``changes`` optimistically and send them to the server.

        Returns:
            EditResult: COMMITTED with the stored rule, or ROLLED_BACK with
            the restored rule and a failure notice for the admin
        """
        if isinstance(changes, dict):
            changes = MaintenanceRuleUpdate.model_validate(changes)

        snapshot = self._confirmed
        self._current = self._current.model_copy(update=changes.changes())
        self.state = EditState.PENDING

        try:
            stored = await self._api.update_rule(changes, updated_by=updated_by)
        except MaintenanceApiError as e:
            logger.error(f"Maintenance update rejected, rolling back: {e}")
            self._current = snapshot
            self.state = EditState.ROLLED_BACK
            return EditResult(EditState.ROLLED_BACK, snapshot, error=f"{FAILURE_NOTICE}: {e}")

        self._confirmed = self._current = stored
        for gate in self._gates:
            gate.invalidate()
        self.state = EditState.COMMITTED
        return EditResult(EditState.COMMITTED, stored)

    async def toggle(self, updated_by: Optional[Union[str, int]] = None) -> EditResult:
        """Flip maintenance mode on or off."""
        return await self.apply(
            MaintenanceRuleUpdate(is_active=not self._current.is_active),
            updated_by=updated_by,
        )
