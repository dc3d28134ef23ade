"""Buffer of usage samples awaiting aggregation."""

import bisect
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from ...cluster.entities.observed_state import ObservedState
from ..entities.usage_record import UsageSample

logger = logging.getLogger(__name__)


class SampleBuffer:
    """TelemetrySource holding samples in time order.

    Samples arrive by push (``record``) or by capturing the quota usage of
    observed namespace snapshots (``capture``).
    """

    def __init__(self, retention_limit: int = 100000):
        self._samples: List[UsageSample] = []
        self._times: List[datetime] = []
        self._retention_limit = retention_limit

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, sample: UsageSample) -> None:
        index = bisect.bisect_right(self._times, sample.sampled_at)
        self._times.insert(index, sample.sampled_at)
        self._samples.insert(index, sample)
        if len(self._samples) > self._retention_limit:
            dropped = len(self._samples) - self._retention_limit
            del self._samples[:dropped]
            del self._times[:dropped]
            logger.warning(f"Sample buffer full, dropped {dropped} oldest samples")

    def record_many(self, samples: Iterable[UsageSample]) -> None:
        for sample in samples:
            self.record(sample)

    def capture(self, states: Iterable[ObservedState], at: Optional[datetime] = None) -> int:
        """Record one sample per quota resource of each snapshot."""
        count = 0
        for state in states:
            sampled_at = at or state.observed_at
            for resource_name, counter in state.usage.items():
                self.record(UsageSample(
                    namespace=state.namespace,
                    resource_name=resource_name,
                    requested=counter.requested,
                    used=counter.used,
                    sampled_at=sampled_at,
                ))
                count += 1
        return count

    async def fetch(self, start: datetime, end: datetime) -> List[UsageSample]:
        lo = bisect.bisect_left(self._times, start)
        hi = bisect.bisect_left(self._times, end)
        return list(self._samples[lo:hi])

    def prune(self, before: datetime) -> int:
        """Drop samples older than ``before``."""
        cut = bisect.bisect_left(self._times, before)
        del self._samples[:cut]
        del self._times[:cut]
        return cut
