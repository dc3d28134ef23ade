"""Tenant registry router.

Exposes the registry and the per-tenant reconciliation status. Domain
errors (validation, admission refusals, unknown tenants) propagate to the
application's NeoQuotaError handler, which renders them with
``create_error_response``.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...reconciliation.services.reconciliation_engine import ReconciliationEngine
from ..models.requests import TenantSpecRequest
from ..models.responses import (
    DegradedTenantsResponse,
    ReconcileStatusResponse,
    TenantListResponse,
    TenantSpecResponse,
)
from ..services.registry_service import TenantRegistryService

logger = logging.getLogger(__name__)

tenant_router = APIRouter(
    prefix="/tenants",
    tags=["Tenants"],
    responses={
        400: {"description": "Spec violates a registry rule"},
        404: {"description": "Tenant not found"},
        409: {"description": "Deletion refused or tenant degraded"},
    },
)


# Placeholder dependencies, overridden by the application via dependency_overrides

def get_registry_service() -> TenantRegistryService:
    raise HTTPException(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        detail="Tenant registry not configured",
    )


def get_reconciliation_engine() -> ReconciliationEngine:
    raise HTTPException(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        detail="Reconciliation engine not configured",
    )


TENANT_ID = Path(..., min_length=1, max_length=63, description="Tenant identifier")


@tenant_router.get("", response_model=TenantListResponse)
async def list_tenants(
    registry: TenantRegistryService = Depends(get_registry_service),
) -> TenantListResponse:
    """List every registered tenant spec."""
    specs = await registry.list()
    return TenantListResponse(
        tenants=[TenantSpecResponse.from_entity(spec) for spec in specs],
        total=len(specs),
    )


@tenant_router.get("/degraded", response_model=DegradedTenantsResponse)
async def list_degraded_tenants(
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
) -> DegradedTenantsResponse:
    """Tenants that exhausted their retry budget and wait for an operator."""
    states = engine.degraded()
    return DegradedTenantsResponse(
        tenants=[ReconcileStatusResponse.from_state(state) for state in states],
        total=len(states),
    )


@tenant_router.put("/{tenant_id}", response_model=TenantSpecResponse)
async def put_tenant(
    request: TenantSpecRequest,
    tenant_id: str = TENANT_ID,
    registry: TenantRegistryService = Depends(get_registry_service),
) -> TenantSpecResponse:
    """Register or replace a tenant spec."""
    spec = await registry.put(request.to_entity(tenant_id))
    return TenantSpecResponse.from_entity(spec)


@tenant_router.get("/{tenant_id}", response_model=TenantSpecResponse)
async def get_tenant(
    tenant_id: str = TENANT_ID,
    registry: TenantRegistryService = Depends(get_registry_service),
) -> TenantSpecResponse:
    spec = await registry.get(tenant_id)
    return TenantSpecResponse.from_entity(spec)


@tenant_router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: str = TENANT_ID,
    registry: TenantRegistryService = Depends(get_registry_service),
) -> None:
    """Offboard a tenant. Refused while other tenants reference its namespace."""
    await registry.delete(tenant_id)


@tenant_router.get("/{tenant_id}/status", response_model=ReconcileStatusResponse)
async def get_tenant_status(
    tenant_id: str = TENANT_ID,
    registry: TenantRegistryService = Depends(get_registry_service),
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
) -> ReconcileStatusResponse:
    """Reconciliation state, including Degraded."""
    await registry.get(tenant_id)
    return ReconcileStatusResponse.from_state(engine.status(tenant_id))


@tenant_router.post("/{tenant_id}/reset", response_model=ReconcileStatusResponse)
async def reset_tenant(
    tenant_id: str = TENANT_ID,
    registry: TenantRegistryService = Depends(get_registry_service),
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
) -> ReconcileStatusResponse:
    """Clear a Degraded tenant and re-arm its reconciliation."""
    await registry.get(tenant_id)
    state = engine.reset(tenant_id)
    logger.info(f"Tenant {tenant_id} reset by operator")
    return ReconcileStatusResponse.from_state(state)
