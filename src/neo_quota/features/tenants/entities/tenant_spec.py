"""TenantSpec domain entity.

A TenantSpec is the desired state of one tenant namespace: its quota,
default container limits, RBAC rules and network rules. Specs are immutable;
an update is a new spec with a higher registry version.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from ....core.value_objects import TenantId, parse_quantity


def _frozen(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class QuotaSpec:
    """Aggregate resource ceilings for a namespace.

    Quantities are kept as written by the operator ("4", "500m", "8Gi") and
    compared by parsed value.
    """

    cpu_limit: str
    mem_limit: str
    cpu_request: str
    mem_request: str
    pod_limit: int

    @property
    def cpu_limit_value(self) -> Decimal:
        return parse_quantity(self.cpu_limit)

    @property
    def mem_limit_value(self) -> Decimal:
        return parse_quantity(self.mem_limit)

    @property
    def cpu_request_value(self) -> Decimal:
        return parse_quantity(self.cpu_request)

    @property
    def mem_request_value(self) -> Decimal:
        return parse_quantity(self.mem_request)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu_limit": self.cpu_limit,
            "mem_limit": self.mem_limit,
            "cpu_request": self.cpu_request,
            "mem_request": self.mem_request,
            "pod_limit": self.pod_limit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotaSpec":
        return cls(
            cpu_limit=str(data["cpu_limit"]),
            mem_limit=str(data["mem_limit"]),
            cpu_request=str(data["cpu_request"]),
            mem_request=str(data["mem_request"]),
            pod_limit=int(data["pod_limit"]),
        )


@dataclass(frozen=True)
class LimitRangeSpec:
    """Default container requests/limits applied through a LimitRange."""

    default_cpu: str
    default_memory: str
    default_request_cpu: str
    default_request_memory: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_cpu": self.default_cpu,
            "default_memory": self.default_memory,
            "default_request_cpu": self.default_request_cpu,
            "default_request_memory": self.default_request_memory,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LimitRangeSpec":
        return cls(
            default_cpu=str(data["default_cpu"]),
            default_memory=str(data["default_memory"]),
            default_request_cpu=str(data["default_request_cpu"]),
            default_request_memory=str(data["default_request_memory"]),
        )


@dataclass(frozen=True)
class RbacRule:
    """Allowed verbs on a set of resources in a set of API groups.

    Fields are frozensets so rules compare as sets, independent of order.
    """

    api_groups: FrozenSet[str]
    resources: FrozenSet[str]
    verbs: FrozenSet[str]

    def __post_init__(self):
        object.__setattr__(self, "api_groups", _frozen(self.api_groups))
        object.__setattr__(self, "resources", _frozen(self.resources))
        object.__setattr__(self, "verbs", _frozen(self.verbs))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_groups": sorted(self.api_groups),
            "resources": sorted(self.resources),
            "verbs": sorted(self.verbs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RbacRule":
        return cls(
            api_groups=data.get("api_groups", [""]),
            resources=data.get("resources", []),
            verbs=data.get("verbs", []),
        )


@dataclass(frozen=True)
class NetworkRule:
    """One allowed traffic flow for the tenant namespace.

    ``peer_namespace`` None means the tenant's own namespace.
    """

    direction: str = "ingress"
    peer_namespace: Optional[str] = None
    port: Optional[int] = None
    protocol: str = "TCP"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "peer_namespace": self.peer_namespace,
            "port": self.port,
            "protocol": self.protocol,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkRule":
        return cls(
            direction=data.get("direction", "ingress"),
            peer_namespace=data.get("peer_namespace"),
            port=data.get("port"),
            protocol=data.get("protocol", "TCP"),
        )


@dataclass(frozen=True)
class TenantSpec:
    """Desired state of a tenant, owned by the registry.

    ``version`` is the registry revision, assigned on every successful put
    and ignored by equality so a put/get round trip compares equal.
    """

    identifier: str
    quota: QuotaSpec
    description: str = ""
    rbac_rules: FrozenSet[RbacRule] = field(default_factory=frozenset)
    role_subjects: Tuple[str, ...] = ()
    shared_cluster_roles: Tuple[str, ...] = ()
    network_rules: FrozenSet[NetworkRule] = field(default_factory=frozenset)
    limit_range: Optional[LimitRangeSpec] = None
    labels: Dict[str, str] = field(default_factory=dict, hash=False)
    version: int = field(default=0, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "rbac_rules", frozenset(self.rbac_rules))
        object.__setattr__(self, "network_rules", frozenset(self.network_rules))
        object.__setattr__(self, "role_subjects", tuple(self.role_subjects))
        object.__setattr__(self, "shared_cluster_roles", tuple(self.shared_cluster_roles))
        object.__setattr__(self, "labels", dict(self.labels))

    @property
    def tenant_id(self) -> TenantId:
        return TenantId(self.identifier)

    @property
    def peer_namespaces(self) -> FrozenSet[str]:
        """Other namespaces this tenant's network rules depend on."""
        return frozenset(
            rule.peer_namespace
            for rule in self.network_rules
            if rule.peer_namespace and rule.peer_namespace != self.identifier
        )

    def with_version(self, version: int) -> "TenantSpec":
        return replace(self, version=version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "description": self.description,
            "quota": self.quota.to_dict(),
            "rbac_rules": [
                rule.to_dict()
                for rule in sorted(self.rbac_rules, key=lambda r: (sorted(r.api_groups), sorted(r.resources), sorted(r.verbs)))
            ],
            "role_subjects": list(self.role_subjects),
            "shared_cluster_roles": list(self.shared_cluster_roles),
            "network_rules": [
                rule.to_dict()
                for rule in sorted(self.network_rules, key=lambda r: (r.direction, r.peer_namespace or "", r.port or 0, r.protocol))
            ],
            "limit_range": self.limit_range.to_dict() if self.limit_range else None,
            "labels": dict(self.labels),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TenantSpec":
        limit_range = data.get("limit_range")
        return cls(
            identifier=data["identifier"],
            description=data.get("description") or "",
            quota=QuotaSpec.from_dict(data["quota"]),
            rbac_rules=frozenset(RbacRule.from_dict(r) for r in data.get("rbac_rules") or []),
            role_subjects=tuple(data.get("role_subjects") or ()),
            shared_cluster_roles=tuple(data.get("shared_cluster_roles") or ()),
            network_rules=frozenset(NetworkRule.from_dict(r) for r in data.get("network_rules") or []),
            limit_range=LimitRangeSpec.from_dict(limit_range) if limit_range else None,
            labels=dict(data.get("labels") or {}),
            version=int(data.get("version", 0)),
        )
