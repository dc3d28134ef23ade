"""In-memory usage record repository."""

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..entities.usage_record import UsageKey, UsageRecord


class InMemoryUsageRepository:
    """Dict-backed UsageRecordRepository keyed by record key."""

    def __init__(self):
        self._records: Dict[UsageKey, UsageRecord] = {}
        self._lock = asyncio.Lock()

    async def upsert_many(self, records: Iterable[UsageRecord]) -> int:
        count = 0
        async with self._lock:
            for record in records:
                self._records[record.key] = record
                count += 1
        return count

    async def find(
        self,
        namespace: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageRecord]:
        result = [
            record for record in self._records.values()
            if (namespace is None or record.namespace == namespace)
            and (since is None or record.window_start >= since)
        ]
        return sorted(result, key=lambda r: (r.window_start, r.namespace, r.resource_name))

    def __len__(self) -> int:
        return len(self._records)
