"""In-process event bus.

Fan-out of controller events to subscribers through bounded queues.
Publishing never blocks on a slow subscriber. When a subscriber queue is
full the oldest observed-state or usage event is dropped and a warning
logged; those carry the full new state and the observer's periodic relist
re-emits anything missed. Registry and degraded events are never dropped:
nothing re-emits them, so a full queue grows past its bound to keep them.
"""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Deque, FrozenSet, Iterable, List, Optional

from ..entities.controller_event import ControllerEvent, EventKind

logger = logging.getLogger(__name__)

DURABLE_KINDS: FrozenSet[EventKind] = frozenset({
    EventKind.DESIRED_CHANGED,
    EventKind.TENANT_DELETED,
    EventKind.TENANT_DEGRADED,
})


class Subscription:
    """A subscriber's view of the bus, filtered by event kind."""

    def __init__(self, bus: "EventBus", kinds: FrozenSet[EventKind], maxsize: int):
        self._bus = bus
        self.kinds = kinds
        self.maxsize = maxsize
        self._events: Deque[ControllerEvent] = deque()
        self._ready = asyncio.Event()
        self._closed = False
        self.dropped = 0

    def accepts(self, event: ControllerEvent) -> bool:
        return not self._closed and (not self.kinds or event.kind in self.kinds)

    def _drop_oldest_transient(self) -> bool:
        for queued in self._events:
            if queued.kind not in DURABLE_KINDS:
                self._events.remove(queued)
                return True
        return False

    def offer(self, event: ControllerEvent) -> None:
        if len(self._events) >= self.maxsize:
            if self._drop_oldest_transient():
                self.dropped += 1
                logger.warning(
                    f"Subscriber queue full, dropped oldest event (total dropped: {self.dropped})"
                )
            elif event.kind not in DURABLE_KINDS:
                self.dropped += 1
                logger.warning(
                    f"Subscriber queue full of registry events, dropped {event.kind.value} "
                    f"for {event.tenant_id} (total dropped: {self.dropped})"
                )
                return
        self._events.append(event)
        self._ready.set()

    async def get(self, timeout: Optional[float] = None) -> Optional[ControllerEvent]:
        """Wait for the next event, or None when the subscription is closed or times out."""
        while not self._events:
            if self._closed:
                return None
            self._ready.clear()
            try:
                if timeout is None:
                    await self._ready.wait()
                else:
                    await asyncio.wait_for(self._ready.wait(), timeout)
            except asyncio.TimeoutError:
                return None
        return self._events.popleft()

    def get_nowait(self) -> Optional[ControllerEvent]:
        return self._events.popleft() if self._events else None

    def drain(self) -> List[ControllerEvent]:
        events = list(self._events)
        self._events.clear()
        return events

    def qsize(self) -> int:
        return len(self._events)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._bus.unsubscribe(self)
            # Wakes a blocked consumer
            self._ready.set()

    async def __aiter__(self) -> AsyncIterator[ControllerEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class EventBus:
    """Publish/subscribe hub for controller events."""

    def __init__(self, default_queue_size: int = 1000):
        self._subscriptions: List[Subscription] = []
        self._default_queue_size = default_queue_size
        self.published = 0

    def subscribe(
        self,
        kinds: Optional[Iterable[EventKind]] = None,
        maxsize: Optional[int] = None,
    ) -> Subscription:
        subscription = Subscription(
            self,
            frozenset(kinds or ()),
            maxsize or self._default_queue_size,
        )
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: ControllerEvent) -> int:
        """Deliver an event to every matching subscriber.

        Returns:
            Number of subscribers the event was delivered to
        """
        self.published += 1
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.accepts(event):
                subscription.offer(event)
                delivered += 1
        logger.debug(f"Published {event.kind.value} for {event.tenant_id} to {delivered} subscribers")
        return delivered

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
