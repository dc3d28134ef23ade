"""ObservedState snapshot of one tenant namespace."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from ....config.constants import ObjectKind
from ....core.value_objects import ObjectRef, parse_quantity
from .cluster_object import ClusterObject


@dataclass(frozen=True)
class UsageCounter:
    """Requested (hard) and used amounts for one quota resource."""

    requested: Decimal
    used: Decimal


@dataclass(frozen=True)
class ObservedState:
    """Immutable snapshot of a namespace's live objects and usage.

    Never mutated in place: every change produces a new snapshot that
    supersedes the old one.
    """

    namespace: str
    objects: Mapping[ObjectRef, ClusterObject] = field(default_factory=dict, hash=False)
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "objects", MappingProxyType(dict(self.objects)))

    @classmethod
    def empty(cls, namespace: str, observed_at: Optional[datetime] = None) -> "ObservedState":
        return cls(namespace=namespace, objects={}, observed_at=observed_at or datetime.now(timezone.utc))

    @classmethod
    def from_objects(
        cls,
        namespace: str,
        objects: Iterable[ClusterObject],
        observed_at: Optional[datetime] = None,
    ) -> "ObservedState":
        return cls(
            namespace=namespace,
            objects={obj.ref: obj for obj in objects},
            observed_at=observed_at or datetime.now(timezone.utc),
        )

    @property
    def exists(self) -> bool:
        """Whether the namespace object itself is live."""
        return ObjectRef.namespace_ref(self.namespace) in self.objects

    def get(self, ref: ObjectRef) -> Optional[ClusterObject]:
        return self.objects.get(ref)

    def of_kind(self, kind: ObjectKind) -> Dict[ObjectRef, ClusterObject]:
        return {ref: obj for ref, obj in self.objects.items() if ref.kind == kind}

    def with_object(self, obj: ClusterObject, observed_at: datetime) -> "ObservedState":
        objects = dict(self.objects)
        objects[obj.ref] = obj
        return ObservedState(self.namespace, objects, observed_at)

    def without_object(self, ref: ObjectRef, observed_at: datetime) -> "ObservedState":
        objects = dict(self.objects)
        objects.pop(ref, None)
        return ObservedState(self.namespace, objects, observed_at)

    @property
    def usage(self) -> Dict[str, UsageCounter]:
        """Usage counters from the ResourceQuota status (hard vs used)."""
        counters: Dict[str, UsageCounter] = {}
        for obj in self.of_kind(ObjectKind.RESOURCE_QUOTA).values():
            hard = obj.status.get("hard") or obj.spec.get("hard") or {}
            used = obj.status.get("used") or {}
            for resource, amount in used.items():
                try:
                    counters[resource] = UsageCounter(
                        requested=parse_quantity(hard.get(resource, "0")),
                        used=parse_quantity(amount),
                    )
                except ValueError:
                    continue
        return counters

    @property
    def max_version(self) -> int:
        return max((obj.version for obj in self.objects.values()), default=0)
