"""In-memory tenant repository.

Used by tests and by single-process deployments without Postgres.
"""

import asyncio
from typing import Dict, List, Optional

from ..entities.tenant_spec import TenantSpec


class InMemoryTenantRepository:
    """Dict-backed TenantRepository."""

    def __init__(self):
        self._specs: Dict[str, TenantSpec] = {}
        self._lock = asyncio.Lock()

    async def save(self, spec: TenantSpec) -> TenantSpec:
        async with self._lock:
            self._specs[spec.identifier] = spec
        return spec

    async def find_by_id(self, identifier: str) -> Optional[TenantSpec]:
        return self._specs.get(identifier)

    async def list_all(self) -> List[TenantSpec]:
        return [self._specs[key] for key in sorted(self._specs)]

    async def delete(self, identifier: str) -> bool:
        async with self._lock:
            return self._specs.pop(identifier, None) is not None
