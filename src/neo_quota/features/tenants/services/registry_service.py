"""Tenant registry service.

The operator-facing desired-state store. Every write passes the admission
guard first; successful writes are announced on the event bus so the
reconciliation engine picks them up.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional

from ....core.exceptions import TenantNotFoundError
from ...events.entities.controller_event import ControllerEvent, EventKind
from ...events.services.event_bus import EventBus
from ..entities.protocols import TenantRepository
from ..entities.tenant_spec import TenantSpec

if TYPE_CHECKING:
    from ...admission.services.admission_guard import AdmissionGuard

logger = logging.getLogger(__name__)


class TenantRegistryService:
    """Put/Get/List/Delete over tenant specs."""

    def __init__(
        self,
        repository: TenantRepository,
        guard: "AdmissionGuard",
        event_bus: Optional[EventBus] = None,
    ):
        self._repository = repository
        self._guard = guard
        self._event_bus = event_bus
        self._write_lock = asyncio.Lock()

    async def put(self, spec: TenantSpec) -> TenantSpec:
        """Create or replace a tenant spec.

        Raises:
            ValidationError: If the tenant spec violates an invariant; the registry
                is left unchanged
        """
        self._guard.enforce_put(spec)

        async with self._write_lock:
            existing = await self._repository.find_by_id(spec.identifier)
            version = (existing.version if existing else 0) + 1
            stored = await self._repository.save(spec.with_version(version))

        action = "Updated" if existing else "Registered"
        logger.info(f"{action} tenant {stored.identifier} (version {stored.version})")
        self._publish(EventKind.DESIRED_CHANGED, stored.identifier, stored.version)
        return stored

    async def get(self, identifier: str) -> TenantSpec:
        spec = await self._repository.find_by_id(identifier)
        if spec is None:
            raise TenantNotFoundError(identifier)
        return spec

    async def find(self, identifier: str) -> Optional[TenantSpec]:
        return await self._repository.find_by_id(identifier)

    async def list(self) -> List[TenantSpec]:
        return await self._repository.list_all()

    async def delete(self, identifier: str) -> None:
        """Offboard a tenant.

        Raises:
            TenantNotFoundError: If the tenant is unknown
            OrphanDeletionRefusedError: If other tenants still reference it
        """
        async with self._write_lock:
            existing = await self._repository.find_by_id(identifier)
            if existing is None:
                raise TenantNotFoundError(identifier)
            await self._guard.enforce_delete_tenant(identifier)
            await self._repository.delete(identifier)

        logger.info(f"Deleted tenant {identifier}")
        self._publish(EventKind.TENANT_DELETED, identifier, existing.version)

    def _publish(self, kind: EventKind, identifier: str, version: int) -> None:
        if self._event_bus is None:
            return
        self._event_bus.publish(ControllerEvent(kind=kind, tenant_id=identifier, version=version))
