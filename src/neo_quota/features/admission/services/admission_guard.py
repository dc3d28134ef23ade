"""Admission guard.

Synchronous pre-check run before every registry put/delete and before the
reconciliation engine deletes live RBAC or network objects. A refusal is
always returned or raised explicitly; requests are never rewritten.
"""

import logging
from typing import Iterable, List, Optional, Set

from ....config.constants import ObjectKind, RESERVED_PREFIX
from ....core.exceptions import OrphanDeletionRefusedError, ValidationError
from ....core.value_objects import ObjectRef
from ...tenants.entities.protocols import TenantRepository
from ...tenants.entities.tenant_spec import TenantSpec
from ...tenants.utils.validation import TenantValidationRules
from ..entities.admission_decision import AdmissionDecision

logger = logging.getLogger(__name__)

RULE_NO_ORPHAN_DELETION = "no orphan deletion"


class AdmissionGuard:
    """Enforces registry invariants and the no-orphan-deletion rule."""

    def __init__(self, tenant_repository: TenantRepository, reserved_prefix: str = RESERVED_PREFIX):
        self._repository = tenant_repository
        self._reserved_prefix = reserved_prefix

    @property
    def reserved_prefix(self) -> str:
        return self._reserved_prefix

    def check_put(self, spec: TenantSpec) -> AdmissionDecision:
        """Check the reserved-prefix and quota-ordering invariants (and the
        remaining format rules) for a spec about to be written."""
        try:
            TenantValidationRules.validate_all(spec, self._reserved_prefix)
        except ValidationError as e:
            return AdmissionDecision.refuse(e.rule, e.message)
        return AdmissionDecision.allow()

    def enforce_put(self, spec: TenantSpec) -> None:
        """Raise ValidationError naming the violated rule."""
        TenantValidationRules.validate_all(spec, self._reserved_prefix)

    async def check_delete_tenant(self, tenant_id: str) -> AdmissionDecision:
        """Refuse offboarding while other tenants still reference the namespace."""
        ref = ObjectRef.namespace_ref(tenant_id)
        referrers = await self._referrers(ref, owner=tenant_id)
        if referrers:
            return self._refuse_orphan(ref, referrers)
        return AdmissionDecision.allow()

    async def enforce_delete_tenant(self, tenant_id: str) -> None:
        decision = await self.check_delete_tenant(tenant_id)
        self._raise_if_refused(decision)

    async def check_delete_object(
        self,
        ref: ObjectRef,
        owner: str,
        live_referrers: Iterable[str] = (),
    ) -> AdmissionDecision:
        """Refuse deleting an object other tenants still reference.

        Args:
            ref: Object the caller wants to delete
            owner: Tenant on whose behalf the deletion happens
            live_referrers: Namespaces whose live objects reference ``ref``
        """
        referrers = await self._referrers(ref, owner=owner)
        referrers.update(ns for ns in live_referrers if ns != owner)
        if referrers:
            return self._refuse_orphan(ref, referrers)
        return AdmissionDecision.allow()

    async def enforce_delete_object(
        self,
        ref: ObjectRef,
        owner: str,
        live_referrers: Iterable[str] = (),
    ) -> None:
        decision = await self.check_delete_object(ref, owner, live_referrers)
        self._raise_if_refused(decision)

    async def _referrers(self, ref: ObjectRef, owner: Optional[str]) -> Set[str]:
        specs: List[TenantSpec] = await self._repository.list_all()
        referrers = set()
        for spec in specs:
            if spec.identifier == owner:
                continue
            if self._spec_references(spec, ref):
                referrers.add(spec.identifier)
        return referrers

    @staticmethod
    def _spec_references(spec: TenantSpec, ref: ObjectRef) -> bool:
        if ref.kind == ObjectKind.NAMESPACE:
            return ref.name in spec.peer_namespaces
        if ref.kind == ObjectKind.CLUSTER_ROLE:
            return ref.name in spec.shared_cluster_roles
        return False

    def _refuse_orphan(self, ref: ObjectRef, referrers: Set[str]) -> AdmissionDecision:
        decision = AdmissionDecision.refuse(
            RULE_NO_ORPHAN_DELETION,
            f"{ref} is still referenced by {', '.join(sorted(referrers))}",
            ref=ref,
            referenced_by=tuple(referrers),
        )
        logger.warning(f"Admission refused deletion of {ref}: {decision.reason}")
        return decision

    @staticmethod
    def _raise_if_refused(decision: AdmissionDecision) -> None:
        if decision.allowed:
            return
        raise OrphanDeletionRefusedError(decision.ref, decision.referenced_by)
