"""Tenant repository implementation on Postgres.

Each spec is stored as one JSONB document keyed by identifier, so a read
always returns a complete point-in-time spec.
"""

import json
import logging
from typing import List, Optional

from ....core.exceptions import StorageError
from ...database.services.database_service import DatabaseService
from ..entities.tenant_spec import TenantSpec

logger = logging.getLogger(__name__)


class TenantDatabaseRepository:
    """Database repository for tenant specs."""

    def __init__(self, database: DatabaseService, schema: Optional[str] = None):
        self._db = database
        self._table = f"{schema or database.schema}.tenant_specs"

    async def save(self, spec: TenantSpec) -> TenantSpec:
        query = f"""
            INSERT INTO {self._table} (identifier, version, document, updated_at)
            VALUES ($1, $2, $3::jsonb, NOW())
            ON CONFLICT (identifier) DO UPDATE SET
                version = EXCLUDED.version,
                document = EXCLUDED.document,
                updated_at = NOW()
        """
        await self._db.execute(query, [spec.identifier, spec.version, json.dumps(spec.to_dict())])
        logger.info(f"Saved tenant spec {spec.identifier} (version {spec.version})")
        return spec

    async def find_by_id(self, identifier: str) -> Optional[TenantSpec]:
        row = await self._db.fetch_one(
            f"SELECT document FROM {self._table} WHERE identifier = $1",
            [identifier],
        )
        if not row:
            return None
        return self._map_row(row)

    async def list_all(self) -> List[TenantSpec]:
        rows = await self._db.fetch_all(
            f"SELECT document FROM {self._table} ORDER BY identifier"
        )
        return [self._map_row(row) for row in rows]

    async def delete(self, identifier: str) -> bool:
        result = await self._db.execute(
            f"DELETE FROM {self._table} WHERE identifier = $1",
            [identifier],
        )
        # asyncpg returns the command tag, e.g. "DELETE 1"
        deleted = result.endswith(" 1")
        if deleted:
            logger.info(f"Deleted tenant spec {identifier}")
        return deleted

    def _map_row(self, row) -> TenantSpec:
        document = row["document"]
        if isinstance(document, str):
            document = json.loads(document)
        try:
            return TenantSpec.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt tenant spec document: {e}")
