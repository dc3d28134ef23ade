"""Database service built on an asyncpg connection pool.

Repositories receive this service and only use ``execute``, ``fetch_one``,
``fetch_all`` and ``transaction``; pool lifecycle stays here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import asyncpg

from ....core.exceptions import StorageError
from ..entities.schema import schema_statements

logger = logging.getLogger(__name__)


class DatabaseService:
    """Lazily created asyncpg pool with query helpers."""

    def __init__(
        self,
        dsn: str,
        schema: str = "quota_controller",
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self._dsn = dsn
        self._schema = schema
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    @property
    def schema(self) -> str:
        return self._schema

    async def initialize(self) -> None:
        """Create the pool and the controller tables."""
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            for statement in schema_statements(self._schema):
                await conn.execute(statement)
        logger.info(f"Database schema '{self._schema}' ready")

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            async with self._lock:
                if self._pool is None:  # Double-check
                    try:
                        self._pool = await asyncpg.create_pool(
                            dsn=self._dsn,
                            min_size=self._min_size,
                            max_size=self._max_size,
                            command_timeout=self._command_timeout,
                        )
                    except (asyncpg.PostgresError, OSError) as e:
                        logger.error(f"Failed to create connection pool: {e}")
                        raise StorageError(f"Failed to create connection pool: {e}")
                    logger.info(
                        f"Created connection pool: min={self._min_size}, max={self._max_size}"
                    )
        return self._pool

    async def execute(self, query: str, params: Sequence[Any] = ()) -> str:
        pool = await self._ensure_pool()
        try:
            return await pool.execute(query, *params)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise StorageError(f"Query failed: {e}")

    async def execute_many(self, query: str, rows: Sequence[Sequence[Any]]) -> None:
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(query, rows)
        except asyncpg.PostgresError as e:
            logger.error(f"Batch query failed: {e}")
            raise StorageError(f"Batch query failed: {e}")

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        pool = await self._ensure_pool()
        try:
            row = await pool.fetchrow(query, *params)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise StorageError(f"Query failed: {e}")
        return dict(row) if row else None

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        pool = await self._ensure_pool()
        try:
            rows = await pool.fetch(query, *params)
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise StorageError(f"Query failed: {e}")
        return [dict(row) for row in rows]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> Dict[str, Any]:
        if self._pool is None:
            return {"healthy": False, "reason": "pool not initialized"}
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Database health check failed: {e}")
            return {"healthy": False, "reason": str(e)}
        return {
            "healthy": True,
            "pool_size": self._pool.get_size(),
            "idle": self._pool.get_idle_size(),
        }

    async def close(self) -> None:
        if self._pool is not None:
            async with self._lock:
                if self._pool is not None:
                    await self._pool.close()
                    self._pool = None
                    logger.info("Closed database connection pool")
