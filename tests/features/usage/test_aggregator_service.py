"""Tests for the usage aggregator."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from neo_quota.config.constants import ObjectKind
from neo_quota.core.value_objects import GIB, ObjectRef
from neo_quota.features.cluster.entities.cluster_object import ClusterObject
from neo_quota.features.events.entities.controller_event import EventKind
from neo_quota.features.reconciliation.services.kind_handlers import desired_objects
from neo_quota.features.usage.entities.usage_record import UsageSample
from neo_quota.features.usage.services.aggregator_service import UsageAggregator
from neo_quota.features.usage.services.pricing import UnitPriceTable
from neo_quota.features.usage.services.sample_buffer import SampleBuffer

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
PRICES = UnitPriceTable(prices={"cpu": "0.5", "memory": "0.25"})


def sample(namespace, resource, used, minutes=0, requested="4"):
    return UsageSample(namespace, resource, Decimal(requested), Decimal(used), START + timedelta(minutes=minutes))


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def buffer():
    return SampleBuffer()


@pytest.fixture
def aggregator(usage_repository, buffer, bus, clock):
    return UsageAggregator(usage_repository, buffer, prices=PRICES, event_bus=bus, clock=clock, period_seconds=3600)


class TestWindows:
    def test_windows_aligned_to_epoch(self, aggregator):
        start, end = aggregator.window_bounds(datetime(2024, 3, 5, 10, 37, 12, tzinfo=timezone.utc))
        assert start == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 5, 11, 0, tzinfo=timezone.utc)

    def test_daily_windows(self, usage_repository, buffer):
        daily = UsageAggregator(usage_repository, buffer)
        start, end = daily.window_bounds(datetime(2024, 3, 5, 23, 59, tzinfo=timezone.utc))
        assert start == datetime(2024, 3, 5, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1)

    def test_rejects_non_positive_period(self, usage_repository, buffer):
        with pytest.raises(ValueError):
            UsageAggregator(usage_repository, buffer, period_seconds=0)


class TestAggregateWindow:
    @pytest.mark.asyncio
    async def test_means_and_cost(self, aggregator, buffer, usage_repository):
        buffer.record_many([
            sample("team-a", "requests.cpu", "1", minutes=0),
            sample("team-a", "requests.cpu", "3", minutes=30),
            sample("team-a", "requests.memory", str(2 * GIB), minutes=15, requested=str(4 * GIB)),
            sample("team-b", "requests.cpu", "1", minutes=70),
        ])

        records = await aggregator.aggregate_window(START)

        assert [(r.namespace, r.resource_name) for r in records] == [
            ("team-a", "requests.cpu"),
            ("team-a", "requests.memory"),
        ]
        cpu, memory = records
        assert cpu.used == Decimal(2)
        assert cpu.requested == Decimal(4)
        assert cpu.cost == Decimal("1.000000")
        assert memory.cost == Decimal("0.500000")
        assert cpu.window_end - cpu.window_start == timedelta(hours=1)
        assert len(usage_repository) == 2

    @pytest.mark.asyncio
    async def test_same_window_twice_keeps_one_record_per_key(self, usage_repository, bus, clock):
        telemetry = AsyncMock()
        telemetry.fetch.side_effect = [
            [sample("team-a", "requests.cpu", "1")],
            [sample("team-a", "requests.cpu", "3")],
        ]
        aggregator = UsageAggregator(usage_repository, telemetry, prices=PRICES, clock=clock, period_seconds=3600)

        await aggregator.aggregate_window(START)
        await aggregator.aggregate_window(START + timedelta(minutes=5))

        [record] = await usage_repository.find()
        assert record.used == Decimal(3)
        assert record.cost == Decimal("1.500000")

    @pytest.mark.asyncio
    async def test_empty_window_writes_nothing(self, aggregator, usage_repository):
        assert await aggregator.aggregate_window(START) == []
        assert len(usage_repository) == 0

    @pytest.mark.asyncio
    async def test_usage_recorded_events(self, aggregator, buffer, bus):
        subscription = bus.subscribe([EventKind.USAGE_RECORDED])
        buffer.record(sample("team-a", "requests.cpu", "1"))

        await aggregator.aggregate_window(START)

        [event] = subscription.drain()
        assert event.tenant_id == "team-a"
        assert event.payload["cost"] == "0.500000"
        assert event.payload["window_start"] == START.isoformat()


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_write_leaves_nothing(self, usage_repository, clock):
        release = asyncio.Event()

        class SlowTelemetry:
            async def fetch(self, start, end):
                await release.wait()
                return [sample("team-a", "requests.cpu", "1")]

        aggregator = UsageAggregator(usage_repository, SlowTelemetry(), prices=PRICES, clock=clock, period_seconds=3600)
        task = aggregator.schedule_window(START)
        await asyncio.sleep(0)

        assert aggregator.cancel_pending() == 1
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(usage_repository) == 0

    @pytest.mark.asyncio
    async def test_window_being_written_completes(self, buffer, clock):
        release = asyncio.Event()
        started = asyncio.Event()
        written = []

        class SlowRepository:
            async def upsert_many(self, records):
                started.set()
                await release.wait()
                written.extend(records)
                return len(records)

            async def find(self, namespace=None, since=None):
                return list(written)

        buffer.record(sample("team-a", "requests.cpu", "1"))
        aggregator = UsageAggregator(SlowRepository(), buffer, prices=PRICES, clock=clock, period_seconds=3600)
        task = aggregator.schedule_window(START)
        await started.wait()

        assert aggregator.cancel_pending() == 0
        release.set()
        records = await task
        assert written == records


class TestSampling:
    @pytest.mark.asyncio
    async def test_collect_samples_from_observer(self, usage_repository, buffer, cluster, observer, clock):
        cluster.seed(
            ClusterObject(ref=ObjectRef.namespace_ref("team-a")),
            ClusterObject(
                ref=ObjectRef(ObjectKind.RESOURCE_QUOTA, "team-a", "team-a-quota"),
                spec={"hard": {"requests.cpu": "2"}},
                status={"hard": {"requests.cpu": "2"}, "used": {"requests.cpu": "1500m"}},
            ),
        )
        await observer.relist()
        aggregator = UsageAggregator(usage_repository, buffer, prices=PRICES, clock=clock, period_seconds=3600, observer=observer)

        assert await aggregator.collect_samples() == 1

        [collected] = await buffer.fetch(START, START + timedelta(hours=1))
        assert collected.used == Decimal("1.5")
        assert collected.sampled_at == clock.now()

    @pytest.mark.asyncio
    async def test_quota_with_limits_and_requests_billed_once(
        self, usage_repository, buffer, cluster, observer, clock, spec_factory
    ):
        spec = spec_factory("team-a")
        desired = desired_objects(spec)
        quota = next(obj for obj in desired.values() if obj.kind == ObjectKind.RESOURCE_QUOTA)
        used = {
            "limits.cpu": "2",
            "requests.cpu": "2",
            "limits.memory": "1Gi",
            "requests.memory": "1Gi",
            "pods": "3",
        }
        cluster.seed(
            desired[ObjectRef.namespace_ref("team-a")],
            quota.with_status({"hard": dict(quota.spec["hard"]), "used": used}),
        )
        await observer.relist()
        prices = UnitPriceTable(prices={"cpu": "1", "memory": "0.25", "pods": "0"})
        aggregator = UsageAggregator(
            usage_repository, buffer, prices=prices, clock=clock, period_seconds=3600, observer=observer
        )

        assert await aggregator.collect_samples() == 5
        records = await aggregator.aggregate_window(START)

        costs = {r.resource_name: r.cost for r in records}
        assert costs["requests.cpu"] == Decimal("2.000000")
        assert costs["limits.cpu"] == Decimal("0.000000")
        assert costs["limits.memory"] == Decimal("0.000000")
        assert sum(costs.values()) == Decimal("2.25")

    @pytest.mark.asyncio
    async def test_collect_without_buffer_is_noop(self, usage_repository, observer, clock):
        aggregator = UsageAggregator(usage_repository, AsyncMock(), clock=clock, observer=observer)
        assert await aggregator.collect_samples() == 0


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_window_aggregated_when_it_closes(self, aggregator, buffer, usage_repository, clock):
        buffer.record_many([
            sample("team-a", "requests.cpu", "2", minutes=10),
            sample("team-a", "requests.cpu", "2", minutes=50),
        ])
        task = asyncio.create_task(aggregator.run())
        try:
            await wait_until(lambda: clock.pending_sleepers >= 1)
            assert len(usage_repository) == 0

            await clock.advance(3600)
            await wait_until(lambda: len(usage_repository) == 1)

            [record] = await usage_repository.find(namespace="team-a")
            assert record.window_start == START
            assert record.cost == Decimal("1.000000")
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
