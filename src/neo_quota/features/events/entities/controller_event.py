"""Controller event entity.

Events are the only channel between the registry, the observer, the
reconciliation engine and the usage aggregator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ....core.value_objects import ObjectRef


class EventKind(str, Enum):
    """Kinds of controller events."""

    DESIRED_CHANGED = "desired_changed"
    TENANT_DELETED = "tenant_deleted"
    OBSERVED_CHANGED = "observed_changed"
    USAGE_RECORDED = "usage_recorded"
    TENANT_DEGRADED = "tenant_degraded"


@dataclass(frozen=True)
class ControllerEvent:
    """An immutable fact published on the event bus.

    ``tenant_id`` is the namespace the event concerns. ``version`` is the
    registry revision for desired-state events and the object version for
    observed changes. ``obj`` is None for tombstones.
    """

    kind: EventKind
    tenant_id: str
    ref: Optional[ObjectRef] = None
    version: Optional[int] = None
    obj: Optional[Any] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_tombstone(self) -> bool:
        return self.kind == EventKind.OBSERVED_CHANGED and self.obj is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "tenant_id": self.tenant_id,
            "ref": str(self.ref) if self.ref else None,
            "version": self.version,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }
