"""Exception hierarchy for neo-quota."""

from .base import NeoQuotaError, StorageError, ConfigurationError
from .domain import (
    ValidationError,
    TenantNotFoundError,
    AdmissionRefusedError,
    OrphanDeletionRefusedError,
    DegradedTenantError,
)
from .cluster import (
    ClusterError,
    ConflictError,
    TransientClusterError,
    ClusterObjectNotFoundError,
)
from .http_mapping import HTTP_STATUS_MAP, get_http_status_code, create_error_response

__all__ = [
    "NeoQuotaError",
    "StorageError",
    "ConfigurationError",
    "ValidationError",
    "TenantNotFoundError",
    "AdmissionRefusedError",
    "OrphanDeletionRefusedError",
    "DegradedTenantError",
    "ClusterError",
    "ConflictError",
    "TransientClusterError",
    "ClusterObjectNotFoundError",
    "HTTP_STATUS_MAP",
    "get_http_status_code",
    "create_error_response",
]
