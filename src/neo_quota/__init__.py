"""Neo-Quota - quota, RBAC and cost reconciliation for multi-tenant clusters.

Keeps every tenant namespace's ResourceQuota, LimitRange, RBAC objects and
NetworkPolicy in sync with a declarative tenant registry, and rolls usage
samples up into cost-attribution records.
"""

from .__version__ import __version__

from .core.exceptions import (
    NeoQuotaError,
    ValidationError,
    TenantNotFoundError,
    AdmissionRefusedError,
    OrphanDeletionRefusedError,
    ClusterError,
    ConflictError,
    TransientClusterError,
    DegradedTenantError,
    StorageError,
)

from .core.value_objects import TenantId, ObjectRef

__all__ = [
    "__version__",
    "NeoQuotaError",
    "ValidationError",
    "TenantNotFoundError",
    "AdmissionRefusedError",
    "OrphanDeletionRefusedError",
    "ClusterError",
    "ConflictError",
    "TransientClusterError",
    "DegradedTenantError",
    "StorageError",
    "TenantId",
    "ObjectRef",
]
