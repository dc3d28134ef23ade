from .plan import Action, ActionType, ReconciliationPlan
from .tenant_state import ReconcilePhase, TenantReconcileState

__all__ = [
    "Action",
    "ActionType",
    "ReconciliationPlan",
    "ReconcilePhase",
    "TenantReconcileState",
]
