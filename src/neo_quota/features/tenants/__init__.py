"""Tenants feature - the tenant registry store.

The registry service, HTTP models and the router live in ``services``,
``models`` and ``routers``; they depend on the admission guard, which in
turn depends on this package's entities, so they are imported from their
modules directly.
"""

from .entities import (
    TenantSpec,
    QuotaSpec,
    LimitRangeSpec,
    RbacRule,
    NetworkRule,
    TenantRepository,
)
from .repositories import InMemoryTenantRepository, TenantDatabaseRepository
from .utils.validation import TenantValidationRules

__all__ = [
    "TenantSpec",
    "QuotaSpec",
    "LimitRangeSpec",
    "RbacRule",
    "NetworkRule",
    "TenantRepository",
    "InMemoryTenantRepository",
    "TenantDatabaseRepository",
    "TenantValidationRules",
]
