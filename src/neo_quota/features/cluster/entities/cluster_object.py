"""Cluster object entities.

A ClusterObject is an immutable snapshot of one live object. Its ``spec``
uses a kind-neutral layout; adapters translate to and from the wire
format of the real cluster API.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from ....config.constants import ManagedLabels
from ....core.value_objects import ObjectRef


@dataclass(frozen=True)
class ClusterObject:
    """Snapshot of a live (or desired) cluster object.

    ``version`` is the opaque optimistic-concurrency token, an integer that
    never decreases for a given object. Desired objects carry version 0.
    """

    ref: ObjectRef
    spec: Dict[str, Any] = field(default_factory=dict, hash=False)
    labels: Dict[str, str] = field(default_factory=dict, hash=False)
    version: int = 0
    status: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def kind(self):
        return self.ref.kind

    @property
    def namespace(self) -> Optional[str]:
        return self.ref.namespace

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def is_managed(self) -> bool:
        return self.labels.get(ManagedLabels.MANAGED_BY) == ManagedLabels.MANAGED_BY_VALUE

    @property
    def tenant(self) -> Optional[str]:
        return self.labels.get(ManagedLabels.TENANT)

    def with_version(self, version: int) -> "ClusterObject":
        return replace(self, version=version)

    def with_status(self, status: Dict[str, Any]) -> "ClusterObject":
        return replace(self, status=dict(status))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.ref.kind.value,
            "namespace": self.ref.namespace,
            "name": self.ref.name,
            "spec": self.spec,
            "labels": self.labels,
            "version": self.version,
            "status": self.status,
        }


class WatchEventType(str, Enum):
    """Watch event types."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    """One change reported by the cluster watch channel.

    For DELETED events ``obj`` is the last known state and ``obj.version``
    the version at deletion.
    """

    type: WatchEventType
    obj: ClusterObject

    @property
    def ref(self) -> ObjectRef:
        return self.obj.ref

    @property
    def version(self) -> int:
        return self.obj.version
