from .requests import (
    QuotaRequest,
    LimitRangeRequest,
    RbacRuleRequest,
    NetworkRuleRequest,
    TenantSpecRequest,
)
from .responses import (
    TenantSpecResponse,
    TenantListResponse,
    ReconcileStatusResponse,
    DegradedTenantsResponse,
)

__all__ = [
    "QuotaRequest",
    "LimitRangeRequest",
    "RbacRuleRequest",
    "NetworkRuleRequest",
    "TenantSpecRequest",
    "TenantSpecResponse",
    "TenantListResponse",
    "ReconcileStatusResponse",
    "DegradedTenantsResponse",
]
