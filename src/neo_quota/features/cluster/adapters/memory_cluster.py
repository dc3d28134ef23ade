"""In-memory cluster API.

A versioned object store with a watch channel, used by the test-suite and
for dry runs. Every mutation takes the next value of one global revision
counter, so per-object versions only grow, as with etcd-backed clusters.
Failures can be injected per operation to exercise retry paths.
"""

import asyncio
import logging
from collections import defaultdict
from typing import AsyncIterator, Dict, Iterable, List, Optional

from ....config.constants import ObjectKind
from ....core.exceptions import (
    ClusterObjectNotFoundError,
    ConflictError,
    TransientClusterError,
)
from ....core.value_objects import ObjectRef
from ..entities.cluster_object import ClusterObject, WatchEvent, WatchEventType

logger = logging.getLogger(__name__)


class InMemoryCluster:
    """ClusterClient backed by a dict."""

    def __init__(self, latency: float = 0.0, history_limit: int = 10000):
        self._objects: Dict[ObjectRef, ClusterObject] = {}
        self._revision = 0
        self._history: List[WatchEvent] = []
        self._history_limit = history_limit
        self._watchers: List[asyncio.Queue] = []
        self._failures: Dict[str, List[Exception]] = defaultdict(list)
        self._latency = latency
        self.calls: Dict[str, int] = defaultdict(int)

    # Test helpers

    @property
    def revision(self) -> int:
        return self._revision

    def fail_next(self, operation: str, error: Optional[Exception] = None, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``error``."""
        for _ in range(times):
            self._failures[operation].append(
                error or TransientClusterError(f"injected {operation} failure")
            )

    def clear_failures(self) -> None:
        self._failures.clear()

    def break_watches(self, error: Optional[Exception] = None) -> None:
        """Terminate every open watch stream with an error."""
        for queue in list(self._watchers):
            queue.put_nowait(error or TransientClusterError("watch channel closed"))

    def seed(self, *objects: ClusterObject) -> List[ClusterObject]:
        """Store objects directly, bypassing failure injection."""
        return [self._store(obj) for obj in objects]

    def objects(self) -> Dict[ObjectRef, ClusterObject]:
        return dict(self._objects)

    async def set_status(self, ref: ObjectRef, status: Dict) -> ClusterObject:
        """Replace an object's status, as the cluster does when usage changes."""
        live = self._objects.get(ref)
        if live is None:
            raise ClusterObjectNotFoundError(ref)
        return self._store(live.with_status(status), preserve_status=False)

    # ClusterClient

    async def list_objects(
        self,
        namespace: Optional[str] = None,
        kinds: Optional[Iterable[ObjectKind]] = None,
    ) -> List[ClusterObject]:
        await self._enter("list")
        kind_filter = set(kinds) if kinds else None
        result = []
        for ref, obj in self._objects.items():
            if namespace is not None and ref.scope != namespace:
                continue
            if kind_filter is not None and ref.kind not in kind_filter:
                continue
            result.append(obj)
        return sorted(result, key=lambda o: o.ref)

    async def get(self, ref: ObjectRef) -> Optional[ClusterObject]:
        await self._enter("get")
        return self._objects.get(ref)

    async def apply(self, obj: ClusterObject, expected_version: Optional[int] = None) -> ClusterObject:
        await self._enter("apply")
        live = self._objects.get(obj.ref)
        if expected_version is not None:
            actual = live.version if live else None
            if actual != expected_version:
                raise ConflictError(obj.ref, expected_version, actual)
        if obj.ref.namespace is not None:
            if ObjectRef.namespace_ref(obj.ref.namespace) not in self._objects:
                raise ClusterObjectNotFoundError(ObjectRef.namespace_ref(obj.ref.namespace))
        if live is not None and live.spec == obj.spec and live.labels == obj.labels:
            return live
        return self._store(obj)

    async def delete(self, ref: ObjectRef, expected_version: Optional[int] = None) -> None:
        await self._enter("delete")
        live = self._objects.get(ref)
        if live is None:
            raise ClusterObjectNotFoundError(ref)
        if expected_version is not None and live.version != expected_version:
            raise ConflictError(ref, expected_version, live.version)
        if ref.kind == ObjectKind.NAMESPACE:
            # Namespace deletion cascades to its contents
            for child in [r for r in self._objects if r.namespace == ref.name]:
                self._remove(child)
        self._remove(ref)

    async def watch(self, since_version: int = 0) -> AsyncIterator[WatchEvent]:
        await self._enter("watch")
        queue: asyncio.Queue = asyncio.Queue()
        for event in self._history:
            if event.version > since_version:
                queue.put_nowait(event)
        self._watchers.append(queue)
        try:
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            if queue in self._watchers:
                self._watchers.remove(queue)

    # Internals

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if self._latency:
            await asyncio.sleep(self._latency)
        else:
            await asyncio.sleep(0)
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _next_revision(self) -> int:
        self._revision += 1
        return self._revision

    def _store(self, obj: ClusterObject, preserve_status: bool = True) -> ClusterObject:
        live = self._objects.get(obj.ref)
        if live is not None and preserve_status and not obj.status:
            obj = obj.with_status(live.status)
        stored = obj.with_version(self._next_revision())
        self._objects[obj.ref] = stored
        event_type = WatchEventType.ADDED if live is None else WatchEventType.MODIFIED
        self._emit(WatchEvent(event_type, stored))
        logger.debug(f"{event_type.value} {stored.ref} at version {stored.version}")
        return stored

    def _remove(self, ref: ObjectRef) -> None:
        live = self._objects.pop(ref)
        tombstone = live.with_version(self._next_revision())
        self._emit(WatchEvent(WatchEventType.DELETED, tombstone))
        logger.debug(f"DELETED {ref} at version {tombstone.version}")

    def _emit(self, event: WatchEvent) -> None:
        self._history.append(event)
        if len(self._history) > self._history_limit:
            del self._history[: len(self._history) - self._history_limit]
        for queue in list(self._watchers):
            queue.put_nowait(event)
