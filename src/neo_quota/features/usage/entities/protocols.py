"""Protocols for usage telemetry and record persistence."""

from abc import abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from .usage_record import UsageRecord, UsageSample


@runtime_checkable
class TelemetrySource(Protocol):
    """Source of usage samples."""

    @abstractmethod
    async def fetch(self, start: datetime, end: datetime) -> List[UsageSample]:
        """Samples taken in ``[start, end)``."""
        ...


@runtime_checkable
class UsageRecordRepository(Protocol):
    """Append-only store of usage records keyed by (namespace, resource, window)."""

    @abstractmethod
    async def upsert_many(self, records: Iterable[UsageRecord]) -> int:
        """Insert records, replacing any with the same key."""
        ...

    @abstractmethod
    async def find(
        self,
        namespace: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageRecord]:
        """Records ordered by window start, then namespace and resource."""
        ...
