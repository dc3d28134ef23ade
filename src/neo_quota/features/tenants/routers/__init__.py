from .tenant_router import tenant_router, get_registry_service, get_reconciliation_engine

__all__ = ["tenant_router", "get_registry_service", "get_reconciliation_engine"]
