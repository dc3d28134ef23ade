"""HTTP status code mapping for exceptions."""

from typing import Any, Dict

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


HTTP_STATUS_MAP = {
    ValidationError: 400,
    TenantNotFoundError: 404,
    ClusterObjectNotFoundError: 404,
    ConflictError: 409,
    OrphanDeletionRefusedError: 409,
    AdmissionRefusedError: 403,
    DegradedTenantError: 409,
    TransientClusterError: 503,
    ClusterError: 502,
    StorageError: 500,
    ConfigurationError: 500,
    NeoQuotaError: 500,
}


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception, most specific class first."""
    for exc_class in type(exception).__mro__:
        if exc_class in HTTP_STATUS_MAP:
            return HTTP_STATUS_MAP[exc_class]
    return 500


def create_error_response(exception: NeoQuotaError) -> Dict[str, Any]:
    """Create standardized error response from exception."""
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
