"""Usage aggregator.

Rolls usage samples up into one UsageRecord per (namespace, resource,
window). Windows are aligned to multiples of the period since the epoch so
windows of one namespace and resource never overlap. Writing a window's
records is shielded from cancellation: a window is either written in full
or, when cancelled before the write began, not at all.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from ....config.constants import DEFAULT_AGGREGATION_PERIOD
from ....utils.clock import Clock, SystemClock
from ...cluster.services.observer_service import ClusterObserver
from ...events.entities.controller_event import ControllerEvent, EventKind
from ...events.services.event_bus import EventBus
from ..entities.protocols import TelemetrySource, UsageRecordRepository
from ..entities.usage_record import UsageRecord, UsageSample
from .pricing import UnitPriceTable
from .sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class UsageAggregator:
    """Periodic usage-to-cost roll-up."""

    def __init__(
        self,
        repository: UsageRecordRepository,
        telemetry: TelemetrySource,
        prices: Optional[UnitPriceTable] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        period_seconds: int = DEFAULT_AGGREGATION_PERIOD,
        observer: Optional[ClusterObserver] = None,
        sample_interval_seconds: float = 60.0,
    ):
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self._repository = repository
        self._telemetry = telemetry
        self._prices = prices or UnitPriceTable()
        self._bus = event_bus
        self._clock = clock or SystemClock()
        self._period = period_seconds
        self._observer = observer
        self._sample_interval = sample_interval_seconds

        self._pending: Dict[datetime, asyncio.Task] = {}
        self._writing: Set[datetime] = set()

    @property
    def period(self) -> timedelta:
        return timedelta(seconds=self._period)

    def window_bounds(self, at: datetime) -> Tuple[datetime, datetime]:
        """The aligned window containing ``at``."""
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        elapsed = int((at - EPOCH).total_seconds())
        start = EPOCH + timedelta(seconds=elapsed - elapsed % self._period)
        return start, start + self.period

    def _build_records(
        self, samples: List[UsageSample], start: datetime, end: datetime
    ) -> List[UsageRecord]:
        groups: Dict[Tuple[str, str], List[UsageSample]] = defaultdict(list)
        for sample in samples:
            groups[(sample.namespace, sample.resource_name)].append(sample)

        hours = Decimal(self._period) / Decimal(3600)
        records = []
        for (namespace, resource_name), group in sorted(groups.items()):
            count = Decimal(len(group))
            requested = sum((s.requested for s in group), Decimal(0)) / count
            used = sum((s.used for s in group), Decimal(0)) / count
            records.append(UsageRecord(
                namespace=namespace,
                resource_name=resource_name,
                window_start=start,
                window_end=end,
                requested=requested,
                used=used,
                cost=self._prices.cost(resource_name, used, hours),
            ))
        return records

    async def aggregate_window(self, window_start: datetime) -> List[UsageRecord]:
        """Aggregate and persist the window containing ``window_start``.

        Running it again for the same window replaces the earlier records.
        """
        start, end = self.window_bounds(window_start)
        samples = await self._telemetry.fetch(start, end)
        records = self._build_records(samples, start, end)
        if not records:
            logger.debug(f"No usage samples for window {start.isoformat()}")
            return []

        self._writing.add(start)
        try:
            await asyncio.shield(self._write(records))
        finally:
            self._writing.discard(start)
        return records

    async def _write(self, records: List[UsageRecord]) -> None:
        await self._repository.upsert_many(records)
        if self._bus is not None:
            for record in records:
                self._bus.publish(ControllerEvent(
                    kind=EventKind.USAGE_RECORDED,
                    tenant_id=record.namespace,
                    payload=record.to_dict(),
                ))
        logger.info(
            f"Recorded {len(records)} usage records for window {records[0].window_start.isoformat()}"
        )

    def schedule_window(self, window_start: datetime) -> asyncio.Task:
        start, _ = self.window_bounds(window_start)
        task = asyncio.create_task(self.aggregate_window(start), name=f"aggregate-{start.isoformat()}")
        self._pending[start] = task
        task.add_done_callback(lambda _: self._pending.pop(start, None))
        return task

    def cancel_pending(self) -> int:
        """Cancel scheduled windows whose write has not started.

        Returns:
            Number of window tasks cancelled
        """
        cancelled = 0
        for start, task in list(self._pending.items()):
            if start in self._writing or task.done():
                continue
            task.cancel()
            cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending aggregation windows")
        return cancelled

    async def collect_samples(self) -> int:
        """Capture current quota usage of every observed namespace."""
        if self._observer is None or not isinstance(self._telemetry, SampleBuffer):
            return 0
        states = [self._observer.snapshot(ns) for ns in self._observer.namespaces()]
        return self._telemetry.capture(states, at=self._clock.now())

    async def _sample_loop(self) -> None:
        while True:
            await self.collect_samples()
            await self._clock.sleep(self._sample_interval)

    async def run(self) -> None:
        """Aggregate each window as soon as it closes."""
        sampler = asyncio.create_task(self._sample_loop()) if self._observer is not None else None
        try:
            while True:
                now = self._clock.now()
                start, end = self.window_bounds(now)
                await self._clock.sleep((end - now).total_seconds())
                try:
                    await self.schedule_window(start)
                except Exception as e:
                    logger.error(f"Aggregation of window {start.isoformat()} failed: {e}")
                if isinstance(self._telemetry, SampleBuffer):
                    self._telemetry.prune(start)
        finally:
            if sampler is not None:
                sampler.cancel()
            self.cancel_pending()
