"""Constants and enums for neo-quota.

This module defines the object kinds the controller manages, the order in
which they are applied, the labels stamped on managed objects, and the
resource names the usage aggregator bills for.
"""

from enum import Enum
from typing import Final, Tuple


class ObjectKind(str, Enum):
    """Cluster object kinds known to the controller."""

    NAMESPACE = "namespace"
    RESOURCE_QUOTA = "resource_quota"
    LIMIT_RANGE = "limit_range"
    ROLE = "role"
    ROLE_BINDING = "role_binding"
    NETWORK_POLICY = "network_policy"
    CLUSTER_ROLE = "cluster_role"

    @property
    def is_cluster_scoped(self) -> bool:
        """Check if objects of this kind live outside any namespace."""
        return self in (ObjectKind.NAMESPACE, ObjectKind.CLUSTER_ROLE)


# Parents before children
APPLY_ORDER: Final[Tuple[ObjectKind, ...]] = (
    ObjectKind.NAMESPACE,
    ObjectKind.RESOURCE_QUOTA,
    ObjectKind.LIMIT_RANGE,
    ObjectKind.ROLE,
    ObjectKind.ROLE_BINDING,
    ObjectKind.NETWORK_POLICY,
)

# Kinds the controller creates and deletes inside tenant namespaces
MANAGED_KINDS: Final[Tuple[ObjectKind, ...]] = APPLY_ORDER


class ManagedLabels:
    """Labels stamped on every object the controller owns."""

    MANAGED_BY: Final[str] = "app.kubernetes.io/managed-by"
    MANAGED_BY_VALUE: Final[str] = "neo-quota-controller"
    TENANT: Final[str] = "neo-quota/tenant"


class ObjectNames:
    """Name patterns for generated per-tenant objects."""

    RESOURCE_QUOTA: Final[str] = "{tenant}-quota"
    LIMIT_RANGE: Final[str] = "{tenant}-limits"
    ROLE: Final[str] = "{tenant}-tenant"
    ROLE_BINDING: Final[str] = "{tenant}-tenant"
    SHARED_ROLE_BINDING: Final[str] = "{tenant}-{cluster_role}"
    NETWORK_POLICY: Final[str] = "{tenant}-isolation"


class QuotaResources:
    """ResourceQuota resource names, also used as usage resource names."""

    LIMITS_CPU: Final[str] = "limits.cpu"
    LIMITS_MEMORY: Final[str] = "limits.memory"
    REQUESTS_CPU: Final[str] = "requests.cpu"
    REQUESTS_MEMORY: Final[str] = "requests.memory"
    PODS: Final[str] = "pods"

    ALL: Final[Tuple[str, ...]] = (
        LIMITS_CPU,
        LIMITS_MEMORY,
        REQUESTS_CPU,
        REQUESTS_MEMORY,
        PODS,
    )


class ReconcileDefaults:
    """Default reconciliation tuning values."""

    BACKOFF_BASE_SECONDS: Final[float] = 1.0
    BACKOFF_CAP_SECONDS: Final[float] = 300.0
    BACKOFF_JITTER: Final[float] = 0.1
    MAX_CONSECUTIVE_FAILURES: Final[int] = 10
    MAX_CONFLICT_RETRIES: Final[int] = 5


RESERVED_PREFIX: Final[str] = "kube-"

# Aggregation window, seconds
DEFAULT_AGGREGATION_PERIOD: Final[int] = 86400

ALLOWED_VERBS: Final[frozenset] = frozenset({
    "get", "list", "watch", "create", "update", "patch", "delete",
    "deletecollection", "impersonate", "bind", "escalate", "*",
})
