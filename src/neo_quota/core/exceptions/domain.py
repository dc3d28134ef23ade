"""Domain exceptions: registry validation, admission and tenant health."""

from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from .base import NeoQuotaError

if TYPE_CHECKING:
    from ..value_objects import ObjectRef


class ValidationError(NeoQuotaError):
    """Raised when a tenant spec violates an invariant.

    Rejected synchronously and never retried. ``rule`` names the violated
    invariant, e.g. ``"reserved prefix"`` or ``"quota ordering"``.
    """

    def __init__(
        self,
        rule: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.rule = rule
        super().__init__(
            message or f"Tenant spec violates rule '{rule}'",
            details={"rule": rule, **(details or {})},
        )


class TenantNotFoundError(NeoQuotaError):
    """Raised when a tenant is not present in the registry."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(
            f"Tenant '{tenant_id}' not found",
            details={"tenant_id": tenant_id},
        )


class AdmissionRefusedError(NeoQuotaError):
    """Raised when the admission guard refuses a mutation."""

    def __init__(self, rule: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.rule = rule
        super().__init__(message, details={"rule": rule, **(details or {})})


class OrphanDeletionRefusedError(AdmissionRefusedError):
    """Raised when deleting an object other tenants still reference."""

    def __init__(self, ref: "ObjectRef", referenced_by: Iterable[str]):
        self.ref = ref
        self.referenced_by = sorted(referenced_by)
        super().__init__(
            "no orphan deletion",
            f"Refusing to delete {ref}: still referenced by {', '.join(self.referenced_by)}",
            details={"object": str(ref), "referenced_by": self.referenced_by},
        )


class DegradedTenantError(NeoQuotaError):
    """Raised when a tenant exhausted its reconciliation retry budget.

    Terminal for automatic handling; surfaced to the operator channel.
    """

    def __init__(self, tenant_id: str, failures: int, last_error: Optional[str] = None):
        self.tenant_id = tenant_id
        self.failures = failures
        self.last_error = last_error
        super().__init__(
            f"Tenant '{tenant_id}' degraded after {failures} consecutive failures",
            details={
                "tenant_id": tenant_id,
                "failures": failures,
                "last_error": last_error,
            },
        )
