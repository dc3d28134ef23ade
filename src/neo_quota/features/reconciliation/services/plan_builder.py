"""Diff desired tenant state against observed cluster state."""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from ....config.constants import MANAGED_KINDS, ObjectKind
from ....core.value_objects import ObjectRef
from ...admission.services.admission_guard import AdmissionGuard
from ...cluster.entities.cluster_object import ClusterObject
from ...cluster.entities.observed_state import ObservedState
from ...tenants.entities.tenant_spec import TenantSpec
from ..entities.plan import Action, ActionType, ReconciliationPlan
from .kind_handlers import KIND_HANDLERS, desired_objects

logger = logging.getLogger(__name__)

ReferrerLookup = Callable[[ObjectRef], Iterable[str]]


class PlanBuilder:
    """Builds the ordered action list that moves a namespace to its spec.

    Extra objects are live objects the tenant spec does not imply: those
    labelled for the tenant and any object of a managed kind inside the
    tenant namespace, hand-made ones included. They are only deleted when
    ``allow_drift_deletion`` is set; otherwise they are reported as skipped
    drift. Deletions of RBAC and network objects are checked with the
    admission guard first and refused ones are dropped from the plan.
    """

    def __init__(
        self,
        guard: AdmissionGuard,
        allow_drift_deletion: bool = False,
        referrer_lookup: Optional[ReferrerLookup] = None,
    ):
        self._guard = guard
        self._allow_drift_deletion = allow_drift_deletion
        self._referrer_lookup = referrer_lookup

    async def build(
        self,
        spec: TenantSpec,
        observed: ObservedState,
        now: Optional[datetime] = None,
    ) -> ReconciliationPlan:
        desired = desired_objects(spec)
        actions: List[Action] = []
        skipped: List[str] = []

        for ref, want in desired.items():
            live = observed.get(ref)
            if live is None:
                actions.append(Action(ActionType.CREATE, ref, payload=want, reason="missing"))
                continue
            if not KIND_HANDLERS[ref.kind].equivalent(want, live):
                actions.append(Action(
                    ActionType.UPDATE,
                    ref,
                    payload=want,
                    expected_version=live.version,
                    reason="differs",
                ))

        for ref, live in observed.objects.items():
            if ref in desired or ref.kind == ObjectKind.NAMESPACE:
                continue
            if not self._is_extra(live, spec.identifier):
                continue
            if not self._allow_drift_deletion:
                logger.info(f"Skipping drift deletion of {ref} for tenant {spec.identifier}")
                skipped.append(f"drift:{ref}")
                continue
            action, refusal = await self._delete_action(live, spec.identifier, reason="drift")
            if action is not None:
                actions.append(action)
            else:
                skipped.append(refusal)

        plan = ReconciliationPlan.build(
            spec.identifier,
            actions,
            created_at=now or datetime.now(timezone.utc),
            skipped=skipped,
        )
        if not plan.is_empty:
            logger.debug(
                f"Plan for {spec.identifier}: "
                + ", ".join(f"{a.type.value} {a.ref}" for a in plan.actions)
            )
        return plan

    async def build_teardown(
        self,
        tenant_id: str,
        observed: ObservedState,
        include_namespace: bool = False,
        now: Optional[datetime] = None,
    ) -> ReconciliationPlan:
        """Plan removing a tenant's managed objects after offboarding."""
        actions: List[Action] = []
        skipped: List[str] = []
        for ref, live in observed.objects.items():
            if not self._owned_by(live, tenant_id):
                continue
            if ref.kind == ObjectKind.NAMESPACE and not include_namespace:
                continue
            action, refusal = await self._delete_action(live, tenant_id, reason="offboarding")
            if action is not None:
                actions.append(action)
            else:
                skipped.append(refusal)
        return ReconciliationPlan.build(
            tenant_id,
            actions,
            created_at=now or datetime.now(timezone.utc),
            skipped=skipped,
        )

    async def _delete_action(
        self, live: ClusterObject, owner: str, reason: str
    ) -> Tuple[Optional[Action], str]:
        handler = KIND_HANDLERS.get(live.kind)
        if live.kind == ObjectKind.NAMESPACE or (handler is not None and handler.guarded_delete):
            referrers = list(self._referrer_lookup(live.ref)) if self._referrer_lookup else []
            decision = await self._guard.check_delete_object(live.ref, owner, live_referrers=referrers)
            if not decision.allowed:
                logger.warning(f"Dropping deletion of {live.ref}: {decision.reason}")
                return None, f"refused:{live.ref}"
        return Action(ActionType.DELETE, live.ref, expected_version=live.version, reason=reason), ""

    @classmethod
    def _is_extra(cls, obj: ClusterObject, tenant_id: str) -> bool:
        if cls._owned_by(obj, tenant_id):
            return True
        return obj.namespace == tenant_id and obj.kind in MANAGED_KINDS

    @staticmethod
    def _owned_by(obj: ClusterObject, tenant_id: str) -> bool:
        return obj.is_managed and obj.tenant == tenant_id
