from .memory_usage_repository import InMemoryUsageRepository
from .usage_database_repository import UsageDatabaseRepository

__all__ = ["InMemoryUsageRepository", "UsageDatabaseRepository"]
