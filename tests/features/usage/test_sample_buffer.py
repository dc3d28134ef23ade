"""Tests for the usage sample buffer."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from neo_quota.config.constants import ObjectKind
from neo_quota.core.value_objects import ObjectRef
from neo_quota.features.cluster.entities.cluster_object import ClusterObject
from neo_quota.features.cluster.entities.observed_state import ObservedState
from neo_quota.features.usage.entities.usage_record import UsageSample
from neo_quota.features.usage.services.sample_buffer import SampleBuffer

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def sample(minutes, used="1", namespace="team-a", resource="requests.cpu"):
    return UsageSample(namespace, resource, Decimal(2), Decimal(used), START + timedelta(minutes=minutes))


class TestSampleBuffer:
    @pytest.mark.asyncio
    async def test_fetch_is_half_open_and_ordered(self):
        buffer = SampleBuffer()
        buffer.record_many([sample(60), sample(30), sample(0), sample(59)])

        fetched = await buffer.fetch(START, START + timedelta(hours=1))

        assert [s.sampled_at.minute for s in fetched] == [0, 30, 59]

    def test_prune(self):
        buffer = SampleBuffer()
        buffer.record_many([sample(0), sample(10), sample(20)])
        assert buffer.prune(START + timedelta(minutes=10)) == 1
        assert len(buffer) == 2

    def test_retention_limit_drops_oldest(self):
        buffer = SampleBuffer(retention_limit=2)
        buffer.record_many([sample(0), sample(1), sample(2)])
        assert len(buffer) == 2

    def test_capture_from_quota_status(self):
        quota = ClusterObject(
            ref=ObjectRef(ObjectKind.RESOURCE_QUOTA, "team-a", "team-a-quota"),
            spec={"hard": {"requests.cpu": "2"}},
            status={"hard": {"requests.cpu": "2", "pods": "20"}, "used": {"requests.cpu": "500m", "pods": "3"}},
        )
        state = ObservedState.from_objects("team-a", [quota], observed_at=START)
        buffer = SampleBuffer()

        assert buffer.capture([state]) == 2

        by_resource = {s.resource_name: s for s in buffer._samples}
        assert by_resource["requests.cpu"].used == Decimal("0.5")
        assert by_resource["requests.cpu"].requested == Decimal(2)
        assert by_resource["pods"].used == Decimal(3)
        assert by_resource["pods"].sampled_at == START
