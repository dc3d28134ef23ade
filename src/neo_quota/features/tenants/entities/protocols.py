"""Protocol interfaces for tenant registry persistence."""

from abc import abstractmethod
from typing import List, Optional, Protocol, runtime_checkable

from .tenant_spec import TenantSpec


@runtime_checkable
class TenantRepository(Protocol):
    """Protocol for tenant spec persistence operations.

    Implementations must give point-in-time consistent reads per key.
    """

    @abstractmethod
    async def save(self, spec: TenantSpec) -> TenantSpec:
        """Insert or replace a spec by identifier."""
        ...

    @abstractmethod
    async def find_by_id(self, identifier: str) -> Optional[TenantSpec]:
        """Find a spec by tenant identifier."""
        ...

    @abstractmethod
    async def list_all(self) -> List[TenantSpec]:
        """List every spec, ordered by identifier."""
        ...

    @abstractmethod
    async def delete(self, identifier: str) -> bool:
        """Delete a spec. Returns False when it did not exist."""
        ...
