from .registry_service import TenantRegistryService

__all__ = ["TenantRegistryService"]
