"""Tenant response models for API endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...reconciliation.entities.tenant_state import TenantReconcileState
from ..entities.tenant_spec import TenantSpec


class TenantSpecResponse(BaseModel):
    """Registered tenant spec."""

    identifier: str = Field(..., description="Tenant identifier, also the namespace name")
    version: int = Field(..., description="Registry revision of this spec")
    description: str = ""
    quota: Dict[str, Any]
    limit_range: Optional[Dict[str, Any]] = None
    rbac_rules: List[Dict[str, Any]] = Field(default_factory=list)
    role_subjects: List[str] = Field(default_factory=list)
    shared_cluster_roles: List[str] = Field(default_factory=list)
    network_rules: List[Dict[str, Any]] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_entity(cls, spec: TenantSpec) -> "TenantSpecResponse":
        return cls(**spec.to_dict())


class TenantListResponse(BaseModel):
    tenants: List[TenantSpecResponse]
    total: int


class ReconcileStatusResponse(BaseModel):
    """Reconciliation state of one tenant."""

    tenant_id: str
    phase: str = Field(..., description="idle, diffing, applying, backoff or degraded")
    consecutive_failures: int
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    last_plan_size: int = 0
    last_success_at: Optional[datetime] = None
    applied_version: int = 0

    @classmethod
    def from_state(cls, state: TenantReconcileState) -> "ReconcileStatusResponse":
        return cls(
            tenant_id=state.tenant_id,
            phase=state.phase.value,
            consecutive_failures=state.consecutive_failures,
            last_error=state.last_error,
            next_attempt_at=state.next_attempt_at,
            last_plan_size=state.last_plan_size,
            last_success_at=state.last_success_at,
            applied_version=state.applied_version,
        )


class DegradedTenantsResponse(BaseModel):
    tenants: List[ReconcileStatusResponse]
    total: int
