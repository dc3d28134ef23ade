"""Usage record repository on Postgres."""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ...database.services.database_service import DatabaseService
from ..entities.usage_record import UsageRecord

logger = logging.getLogger(__name__)


class UsageDatabaseRepository:
    """Database repository for usage records.

    The table's primary key is the record key, so re-aggregating a window
    overwrites the earlier row instead of adding a second one.
    """

    def __init__(self, database: DatabaseService, schema: Optional[str] = None):
        self._db = database
        self._table = f"{schema or database.schema}.usage_records"

    async def upsert_many(self, records: Iterable[UsageRecord]) -> int:
        rows = [
            [r.namespace, r.resource_name, r.window_start, r.window_end, r.requested, r.used, r.cost]
            for r in records
        ]
        if not rows:
            return 0
        query = f"""
            INSERT INTO {self._table}
                (namespace, resource_name, window_start, window_end, requested, used, cost, recorded_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, NOW())
            ON CONFLICT (namespace, resource_name, window_start) DO UPDATE SET
                window_end = EXCLUDED.window_end,
                requested = EXCLUDED.requested,
                used = EXCLUDED.used,
                cost = EXCLUDED.cost,
                recorded_at = NOW()
        """
        await self._db.execute_many(query, rows)
        logger.info(f"Upserted {len(rows)} usage records")
        return len(rows)

    async def find(
        self,
        namespace: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageRecord]:
        conditions = []
        params: List[Any] = []
        if namespace is not None:
            params.append(namespace)
            conditions.append(f"namespace = ${len(params)}")
        if since is not None:
            params.append(since)
            conditions.append(f"window_start >= ${len(params)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self._db.fetch_all(
            f"""
            SELECT namespace, resource_name, window_start, window_end, requested, used, cost
            FROM {self._table}
            {where}
            ORDER BY window_start, namespace, resource_name
            """,
            params,
        )
        return [self._map_row(row) for row in rows]

    def _map_row(self, row) -> UsageRecord:
        return UsageRecord(
            namespace=row["namespace"],
            resource_name=row["resource_name"],
            window_start=row["window_start"],
            window_end=row["window_end"],
            requested=row["requested"],
            used=row["used"],
            cost=row["cost"],
        )
