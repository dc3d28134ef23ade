"""Reconciliation plan entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ....config.constants import APPLY_ORDER
from ....core.value_objects import ObjectRef
from ...cluster.entities.cluster_object import ClusterObject


class ActionType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Action:
    """One cluster mutation.

    ``payload`` is the full desired object for create/update and None for
    delete. ``expected_version`` is the live version token the mutation is
    conditioned on (None for creates).
    """

    type: ActionType
    ref: ObjectRef
    payload: Optional[ClusterObject] = None
    expected_version: Optional[int] = None
    reason: str = ""

    @property
    def is_delete(self) -> bool:
        return self.type == ActionType.DELETE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "ref": str(self.ref),
            "expected_version": self.expected_version,
            "reason": self.reason,
        }


def _order_key(action: Action) -> Tuple[int, int, ObjectRef]:
    rank = APPLY_ORDER.index(action.ref.kind) if action.ref.kind in APPLY_ORDER else len(APPLY_ORDER)
    if action.is_delete:
        # Deletes run after every create/update, dependents first
        return (1, -rank, action.ref)
    return (0, rank, action.ref)


@dataclass(frozen=True)
class ReconciliationPlan:
    """Ordered list of actions for one tenant.

    Creates and updates follow the kind dependency order (namespace before
    quota before limit range before role before binding before network
    policy); deletes come last in the reverse order.
    """

    tenant_id: str
    actions: Tuple[Action, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    skipped: Tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        tenant_id: str,
        actions: Iterable[Action],
        created_at: Optional[datetime] = None,
        skipped: Iterable[str] = (),
    ) -> "ReconciliationPlan":
        ordered = tuple(sorted(actions, key=_order_key))
        return cls(
            tenant_id=tenant_id,
            actions=ordered,
            created_at=created_at or datetime.now(timezone.utc),
            skipped=tuple(skipped),
        )

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def __len__(self) -> int:
        return len(self.actions)

    def of_type(self, action_type: ActionType) -> List[Action]:
        return [a for a in self.actions if a.type == action_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "created_at": self.created_at.isoformat(),
            "actions": [a.to_dict() for a in self.actions],
            "skipped": list(self.skipped),
        }
