from .tenant_spec import TenantSpec, QuotaSpec, LimitRangeSpec, RbacRule, NetworkRule
from .protocols import TenantRepository

__all__ = [
    "TenantSpec",
    "QuotaSpec",
    "LimitRangeSpec",
    "RbacRule",
    "NetworkRule",
    "TenantRepository",
]
