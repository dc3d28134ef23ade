from .memory_tenant_repository import InMemoryTenantRepository
from .tenant_database_repository import TenantDatabaseRepository

__all__ = ["InMemoryTenantRepository", "TenantDatabaseRepository"]
