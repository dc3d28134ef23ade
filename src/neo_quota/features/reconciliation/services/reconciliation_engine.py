"""Reconciliation engine.

Drives every tenant towards its registered spec. Each tenant has its own
state machine (IDLE -> DIFFING -> APPLYING -> IDLE | BACKOFF, plus the
terminal DEGRADED), its own lock, so at most one plan per tenant is ever in
flight, and its own worker task woken by desired or observed changes.
Failures are absorbed into the tenant's state; they never stop the engine
or affect other tenants.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from ....config.constants import ReconcileDefaults
from ....core.exceptions import ConflictError, DegradedTenantError, TenantNotFoundError
from ....core.value_objects import ObjectRef
from ....utils.clock import Clock, SystemClock
from ...admission.services.admission_guard import AdmissionGuard
from ...cluster.entities.protocols import ClusterClient
from ...cluster.services.observer_service import ClusterObserver
from ...events.entities.controller_event import ControllerEvent, EventKind
from ...events.services.event_bus import EventBus, Subscription
from ...tenants.entities.protocols import TenantRepository
from ..entities.plan import ReconciliationPlan
from ..entities.tenant_state import ReconcilePhase, TenantReconcileState
from .backoff import BackoffPolicy
from .kind_handlers import references_of
from .operator_notifier import LoggingOperatorNotifier, OperatorNotifier
from .plan_builder import PlanBuilder
from .plan_executor import PlanExecutor

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Per-tenant reconcile loops over a shared cluster client."""

    def __init__(
        self,
        tenant_repository: TenantRepository,
        observer: ClusterObserver,
        cluster: ClusterClient,
        guard: AdmissionGuard,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        backoff: Optional[BackoffPolicy] = None,
        notifier: Optional[OperatorNotifier] = None,
        max_consecutive_failures: int = ReconcileDefaults.MAX_CONSECUTIVE_FAILURES,
        max_conflict_retries: int = ReconcileDefaults.MAX_CONFLICT_RETRIES,
        allow_drift_deletion: bool = False,
        delete_namespace_on_offboarding: bool = False,
    ):
        self._repository = tenant_repository
        self._observer = observer
        self._bus = event_bus
        self._clock = clock or SystemClock()
        self._backoff = backoff or BackoffPolicy()
        self._notifier = notifier or LoggingOperatorNotifier()
        self._max_failures = max_consecutive_failures
        self._max_conflict_retries = max_conflict_retries
        self._delete_namespace = delete_namespace_on_offboarding

        self._builder = PlanBuilder(
            guard,
            allow_drift_deletion=allow_drift_deletion,
            referrer_lookup=self._live_referrers,
        )
        self._executor = PlanExecutor(cluster)

        self._states: Dict[str, TenantReconcileState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._wakeups: Dict[str, asyncio.Event] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._stopping: Set[str] = set()
        self._subscription: Optional[Subscription] = None

    # Status queries

    def state(self, tenant_id: str) -> TenantReconcileState:
        state = self._states.get(tenant_id)
        if state is None:
            raise TenantNotFoundError(tenant_id)
        return state

    def status(self, tenant_id: str) -> TenantReconcileState:
        """State of a tenant, IDLE for a tenant not reconciled yet."""
        return self._states.get(tenant_id) or TenantReconcileState(tenant_id)

    def states(self) -> List[TenantReconcileState]:
        return [self._states[t] for t in sorted(self._states)]

    def degraded(self) -> List[TenantReconcileState]:
        return [s for s in self.states() if s.is_degraded]

    def _state_for(self, tenant_id: str) -> TenantReconcileState:
        if tenant_id not in self._states:
            self._states[tenant_id] = TenantReconcileState(tenant_id)
        return self._states[tenant_id]

    def _lock_for(self, tenant_id: str) -> asyncio.Lock:
        if tenant_id not in self._locks:
            self._locks[tenant_id] = asyncio.Lock()
        return self._locks[tenant_id]

    def _live_referrers(self, ref: ObjectRef) -> List[str]:
        """Namespaces whose live objects depend on ``ref``."""
        referrers = []
        for namespace in self._observer.namespaces():
            if namespace == ref.scope:
                continue
            snapshot = self._observer.snapshot(namespace)
            if any(ref in references_of(obj) for obj in snapshot.objects.values()):
                referrers.append(namespace)
        return referrers

    # One pass

    async def reconcile_once(self, tenant_id: str) -> TenantReconcileState:
        """Run one diff/apply pass for a tenant.

        Degraded tenants are left untouched until an operator reset.
        """
        state = self._state_for(tenant_id)
        if state.is_degraded:
            logger.debug(f"Skipping degraded tenant {tenant_id}")
            return state

        async with self._lock_for(tenant_id):
            if state.is_degraded:
                return state
            spec = await self._repository.find_by_id(tenant_id)
            if spec is None:
                logger.debug(f"Tenant {tenant_id} no longer registered")
                state.phase = ReconcilePhase.IDLE
                return state

            conflicts = 0
            try:
                if state.passes == 0:
                    # The namespace may predate tracking
                    self._observer.track(tenant_id)
                    await self._observer.refresh(tenant_id)
                state.passes += 1
                while True:
                    state.phase = ReconcilePhase.DIFFING
                    plan = await self._builder.build(
                        spec, self._observer.snapshot(tenant_id), now=self._clock.now()
                    )
                    state.last_plan_size = len(plan)
                    state.phase = ReconcilePhase.APPLYING
                    result = await self._executor.execute(
                        plan, should_stop=lambda: tenant_id in self._stopping
                    )
                    if result.stopped:
                        state.phase = ReconcilePhase.IDLE
                        return state
                    if result.succeeded:
                        await self._after_apply(plan)
                        state.record_success(self._clock.now(), len(plan), spec.version)
                        return state
                    if isinstance(result.error, ConflictError) and conflicts < self._max_conflict_retries:
                        conflicts += 1
                        logger.info(
                            f"Version conflict on {result.failed.ref}, re-diffing {tenant_id} "
                            f"({conflicts}/{self._max_conflict_retries})"
                        )
                        await self._observer.refresh(tenant_id)
                        continue
                    await self._record_failure(state, result.error)
                    return state
            except Exception as e:
                logger.exception(f"Reconcile pass for {tenant_id} failed: {e}")
                await self._record_failure(state, e)
                return state

    async def _after_apply(self, plan: ReconciliationPlan) -> None:
        if plan.is_empty:
            return
        try:
            await self._observer.refresh(plan.tenant_id)
        except Exception as e:
            # The watch stream will catch up
            logger.warning(f"Post-apply refresh of {plan.tenant_id} failed: {e}")

    async def _record_failure(self, state: TenantReconcileState, error: Exception) -> None:
        failures = state.record_failure(str(error) or type(error).__name__)
        if failures > self._max_failures:
            state.phase = ReconcilePhase.DEGRADED
            state.next_attempt_at = None
            logger.error(
                f"Tenant {state.tenant_id} degraded after {failures} consecutive failures"
            )
            self._bus.publish(ControllerEvent(
                kind=EventKind.TENANT_DEGRADED,
                tenant_id=state.tenant_id,
                payload=state.to_dict(),
            ))
            await self._notifier.notify_degraded(state)
            return
        delay = self._backoff.delay(failures)
        state.phase = ReconcilePhase.BACKOFF
        state.next_attempt_at = self._clock.now() + timedelta(seconds=delay)
        logger.warning(
            f"Reconcile of {state.tenant_id} failed ({failures}/{self._max_failures}): "
            f"{state.last_error}; retrying in {delay:.2f}s"
        )

    async def run_due(self, now: Optional[datetime] = None) -> List[str]:
        """Reconcile every registered tenant whose next attempt is due.

        Returns:
            Identifiers of the tenants that were reconciled
        """
        now = now or self._clock.now()
        ran = []
        for spec in await self._repository.list_all():
            state = self._state_for(spec.identifier)
            if not state.is_due(now):
                continue
            await self.reconcile_once(spec.identifier)
            ran.append(spec.identifier)
        return ran

    # Operator actions

    def reset(self, tenant_id: str) -> TenantReconcileState:
        """Clear a Degraded tenant back to IDLE and wake its worker."""
        state = self._state_for(tenant_id)
        if state.is_degraded:
            logger.info(f"Operator reset of degraded tenant {tenant_id}")
        state.reset()
        self.wake(tenant_id)
        return state

    def ensure_not_degraded(self, tenant_id: str) -> None:
        state = self._states.get(tenant_id)
        if state is not None and state.is_degraded:
            raise DegradedTenantError(tenant_id, state.consecutive_failures, state.last_error)

    async def offboard(self, tenant_id: str) -> Optional[ReconciliationPlan]:
        """Stop a deleted tenant's worker and optionally tear down its namespace.

        The worker finishes its in-flight action before exiting.
        """
        self._stopping.add(tenant_id)
        self.wake(tenant_id)
        worker = self._workers.pop(tenant_id, None)
        if worker is not None:
            try:
                await worker
            except asyncio.CancelledError:
                pass

        plan = None
        async with self._lock_for(tenant_id):
            if self._delete_namespace:
                plan = await self._builder.build_teardown(
                    tenant_id,
                    self._observer.snapshot(tenant_id),
                    include_namespace=True,
                    now=self._clock.now(),
                )
                result = await self._executor.execute(plan)
                if not result.succeeded:
                    logger.error(f"Teardown of {tenant_id} stopped at {result.failed.ref}: {result.error}")
                else:
                    logger.info(f"Tore down namespace of offboarded tenant {tenant_id}")

            self._observer.untrack(tenant_id)
            self._states.pop(tenant_id, None)
            self._wakeups.pop(tenant_id, None)
        # The lock stays: passes already queued on it must serialize with later ones
        self._stopping.discard(tenant_id)
        return plan

    # Workers

    def wake(self, tenant_id: str) -> None:
        event = self._wakeups.get(tenant_id)
        if event is not None:
            event.set()

    def ensure_worker(self, tenant_id: str) -> None:
        """Start the tenant's worker if it is not running."""
        worker = self._workers.get(tenant_id)
        if worker is not None and not worker.done():
            self.wake(tenant_id)
            return
        self._stopping.discard(tenant_id)
        self._state_for(tenant_id)
        self._wakeups[tenant_id] = asyncio.Event()
        self._workers[tenant_id] = asyncio.create_task(
            self._worker(tenant_id), name=f"reconcile-{tenant_id}"
        )

    async def _worker(self, tenant_id: str) -> None:
        wake = self._wakeups[tenant_id]
        while tenant_id not in self._stopping:
            state = self._state_for(tenant_id)
            if state.is_degraded:
                wake.clear()
                await self._wait(wake, None)
                continue
            if state.phase == ReconcilePhase.BACKOFF and state.next_attempt_at is not None:
                remaining = (state.next_attempt_at - self._clock.now()).total_seconds()
                if remaining > 0:
                    # Change events do not cut a backoff short
                    wake.clear()
                    await self._wait(wake, remaining)
                    continue
            wake.clear()
            state = await self.reconcile_once(tenant_id)
            if state.phase == ReconcilePhase.IDLE:
                await self._wait(wake, None)
        logger.debug(f"Worker for {tenant_id} exited")

    async def _wait(self, wake: asyncio.Event, timeout: Optional[float]) -> None:
        """Wait for a wake signal or a deadline measured on the clock."""
        waiters = [asyncio.create_task(wake.wait())]
        if timeout is not None:
            waiters.append(asyncio.create_task(self._clock.sleep(timeout)))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                task.cancel()

    async def start_workers(self) -> None:
        for spec in await self._repository.list_all():
            self.ensure_worker(spec.identifier)

    async def run(self) -> None:
        """Dispatch registry and observer changes to tenant workers."""
        self._subscription = self._bus.subscribe(
            {EventKind.DESIRED_CHANGED, EventKind.TENANT_DELETED, EventKind.OBSERVED_CHANGED}
        )
        await self.start_workers()
        try:
            async for event in self._subscription:
                await self._dispatch(event)
        finally:
            await self.stop()

    async def _dispatch(self, event: ControllerEvent) -> None:
        tenant_id = event.tenant_id
        if event.kind == EventKind.DESIRED_CHANGED:
            self.ensure_worker(tenant_id)
        elif event.kind == EventKind.TENANT_DELETED:
            await self.offboard(tenant_id)
        elif tenant_id in self._workers:
            self.wake(tenant_id)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None
        self._stopping.update(self._workers)
        for tenant_id in list(self._workers):
            self.wake(tenant_id)
        workers = list(self._workers.values())
        self._workers.clear()
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._stopping.clear()
