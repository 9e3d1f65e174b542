"""
Client SDK for the maintenance endpoints.

Lets other Python services gate locally with the same evaluator:

    api = MaintenanceApiClient("https://canteen.example.edu")
    gate = MaintenanceGate(fetch_rule=api.get_rule)
"""

from canteen_gate.client.api import MaintenanceApiClient, MaintenanceApiError
from canteen_gate.client.editor import EditResult, EditState, OptimisticRuleEditor

__all__ = [
    "MaintenanceApiClient",
    "MaintenanceApiError",
    "OptimisticRuleEditor",
    "EditResult",
    "EditState",
]
