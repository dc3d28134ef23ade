"""Cluster state observer.

Maintains a long-lived watch against the cluster and turns every add,
update and delete into an OBSERVED_CHANGED event carrying the object's new
snapshot, or a tombstone. Delivery is at-least-once with non-decreasing
per-object versions; duplicates are dropped here and consumers can dedupe
with the same ChangeDeduplicator.

When the watch channel breaks, and on a periodic timer, the observer does a
full relist and synthesizes ordinary change events for every object whose
version advanced and tombstones for objects that vanished. There is no
separate "resync" event kind.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Set

from ....config.constants import MANAGED_KINDS, ObjectKind
from ....core.exceptions import ClusterError, TransientClusterError
from ....core.value_objects import ObjectRef
from ....utils.clock import Clock, SystemClock
from ...events.entities.controller_event import ControllerEvent, EventKind
from ...events.services.event_bus import EventBus
from ..entities.cluster_object import ClusterObject, WatchEvent, WatchEventType
from ..entities.observed_state import ObservedState
from ..entities.protocols import ClusterClient

logger = logging.getLogger(__name__)


class ChangeDeduplicator:
    """Drops changes already seen, keyed by (object, version)."""

    def __init__(self):
        self._versions: Dict[ObjectRef, int] = {}

    def is_new(self, ref: ObjectRef, version: int) -> bool:
        """Record the change and report whether it advances the object."""
        last = self._versions.get(ref)
        if last is not None and version <= last:
            return False
        self._versions[ref] = version
        return True

    def last_version(self, ref: ObjectRef) -> Optional[int]:
        return self._versions.get(ref)


class ClusterObserver:
    """Watches the cluster and publishes ObservedState changes."""

    def __init__(
        self,
        cluster: ClusterClient,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        relist_interval: float = 300.0,
        kinds: Iterable[ObjectKind] = MANAGED_KINDS,
        namespaces: Optional[Iterable[str]] = None,
        retry_delay: float = 1.0,
        max_retry_delay: float = 60.0,
    ):
        self._cluster = cluster
        self._bus = event_bus
        self._clock = clock or SystemClock()
        self._relist_interval = relist_interval
        self._kinds = tuple(kinds)
        # None tracks every namespace
        self._namespaces: Optional[Set[str]] = set(namespaces) if namespaces is not None else None
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay

        self._states: Dict[str, ObservedState] = {}
        self._live: Dict[ObjectRef, int] = {}
        self._dedup = ChangeDeduplicator()
        self._last_revision = 0
        self._lock = asyncio.Lock()
        self._running = False
        self.relists = 0

    # Queries

    def snapshot(self, namespace: str) -> ObservedState:
        """Latest snapshot of a namespace (empty when nothing was seen)."""
        state = self._states.get(namespace)
        if state is None:
            return ObservedState.empty(namespace, self._clock.now())
        return state

    def namespaces(self) -> List[str]:
        return sorted(self._states)

    def managed_namespaces(self) -> List[str]:
        """Namespaces holding at least one object owned by the controller."""
        return sorted(
            ns for ns, state in self._states.items()
            if any(obj.is_managed for obj in state.objects.values())
        )

    def track(self, namespace: str) -> None:
        """Start tracking a namespace known to the registry."""
        if self._namespaces is not None:
            self._namespaces.add(namespace)

    def untrack(self, namespace: str) -> None:
        if self._namespaces is not None:
            self._namespaces.discard(namespace)

    @property
    def last_revision(self) -> int:
        return self._last_revision

    # Change processing

    def _tracked(self, ref: ObjectRef, obj: Optional[ClusterObject] = None) -> bool:
        if ref.kind not in self._kinds:
            return False
        if self._namespaces is None or ref.scope in self._namespaces or ref in self._live:
            return True
        return obj is not None and obj.tenant is not None

    def _apply_change(self, ref: ObjectRef, version: int, obj: Optional[ClusterObject]) -> bool:
        """Record one change and publish it. Returns False for duplicates."""
        if not self._tracked(ref, obj):
            return False
        self._last_revision = max(self._last_revision, version)
        if not self._dedup.is_new(ref, version):
            logger.debug(f"Dropping duplicate change {ref}@{version}")
            return False

        now = self._clock.now()
        namespace = ref.scope
        state = self._states.get(namespace) or ObservedState.empty(namespace, now)
        if obj is None:
            self._live.pop(ref, None)
            state = state.without_object(ref, now)
        else:
            self._live[ref] = version
            state = state.with_object(obj, now)
        self._states[namespace] = state

        self._bus.publish(ControllerEvent(
            kind=EventKind.OBSERVED_CHANGED,
            tenant_id=namespace,
            ref=ref,
            version=version,
            obj=obj,
        ))
        return True

    async def handle(self, event: WatchEvent) -> bool:
        """Process one watch event."""
        async with self._lock:
            obj = None if event.type == WatchEventType.DELETED else event.obj
            return self._apply_change(event.ref, event.version, obj)

    async def relist(self, namespace: Optional[str] = None) -> int:
        """Full (or per-namespace) relist, synthesizing change events.

        Returns:
            Number of change events emitted
        """
        async with self._lock:
            if namespace is None:
                listed = await self._cluster.list_objects(kinds=self._kinds)
            else:
                listed = await self._cluster.list_objects(namespace=namespace, kinds=self._kinds)
            listed = [obj for obj in listed if self._tracked(obj.ref, obj)]

            emitted = 0
            seen = set()
            for obj in listed:
                seen.add(obj.ref)
                if self._apply_change(obj.ref, obj.version, obj):
                    emitted += 1

            max_version = max((obj.version for obj in listed), default=self._last_revision)
            vanished = [
                ref for ref in self._live
                if ref not in seen and (namespace is None or ref.scope == namespace)
            ]
            for ref in vanished:
                tombstone_version = max(max_version, self._live[ref] + 1)
                if self._apply_change(ref, tombstone_version, None):
                    emitted += 1

            if namespace is None:
                self.relists += 1
            if emitted:
                logger.info(
                    f"Relist of {namespace or 'cluster'} synthesized {emitted} change events"
                )
            return emitted

    async def refresh(self, namespace: str) -> ObservedState:
        """Relist one namespace and return its fresh snapshot."""
        await self.relist(namespace)
        return self.snapshot(namespace)

    # Long-running loops

    async def run(self) -> None:
        """Watch loop: relist, then stream changes until the channel breaks."""
        self._running = True
        delay = self._retry_delay
        relist_task = asyncio.create_task(self._relist_timer())
        try:
            while self._running:
                try:
                    await self.relist()
                    async for event in self._cluster.watch(self._last_revision):
                        await self.handle(event)
                    logger.warning("Watch stream ended, relisting")
                    delay = self._retry_delay
                except TransientClusterError as e:
                    logger.warning(f"Watch channel failed: {e}; relisting in {delay:.1f}s")
                    await self._clock.sleep(delay)
                    delay = min(delay * 2, self._max_retry_delay)
                except ClusterError as e:
                    logger.error(f"Cluster error in observer: {e}; retrying in {delay:.1f}s")
                    await self._clock.sleep(delay)
                    delay = min(delay * 2, self._max_retry_delay)
        finally:
            self._running = False
            relist_task.cancel()
            try:
                await relist_task
            except asyncio.CancelledError:
                pass

    async def _relist_timer(self) -> None:
        while True:
            await self._clock.sleep(self._relist_interval)
            try:
                await self.relist()
            except ClusterError as e:
                logger.warning(f"Periodic relist failed: {e}")

    def stop(self) -> None:
        self._running = False
