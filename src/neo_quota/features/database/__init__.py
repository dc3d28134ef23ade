"""Database feature - asyncpg pool shared by the Postgres-backed repositories."""

from .services import DatabaseService
from .entities import schema_statements

__all__ = ["DatabaseService", "schema_statements"]
