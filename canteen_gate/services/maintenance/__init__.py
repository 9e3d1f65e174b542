"""
Maintenance mode: targeting rule store, rule evaluator and gate.
"""

from canteen_gate.services.maintenance.evaluator import is_blocked, normalize_identifier
from canteen_gate.services.maintenance.gate import (
    GateDecision,
    GateReason,
    GateState,
    MaintenanceGate,
    decide,
)

__all__ = [
    "is_blocked",
    "normalize_identifier",
    "decide",
    "GateDecision",
    "GateReason",
    "GateState",
    "MaintenanceGate",
]
