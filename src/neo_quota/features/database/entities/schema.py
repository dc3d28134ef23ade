"""DDL for the registry and usage record tables."""

from typing import List


def schema_statements(schema: str) -> List[str]:
    """Statements creating the controller's tables in ``schema``.

    Every statement is idempotent so it can run on each startup.
    """
    return [
        f"CREATE SCHEMA IF NOT EXISTS {schema}",
        f"""
        CREATE TABLE IF NOT EXISTS {schema}.tenant_specs (
            identifier TEXT PRIMARY KEY,
            version BIGINT NOT NULL,
            document JSONB NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS {schema}.usage_records (
            namespace TEXT NOT NULL,
            resource_name TEXT NOT NULL,
            window_start TIMESTAMPTZ NOT NULL,
            window_end TIMESTAMPTZ NOT NULL,
            requested NUMERIC NOT NULL,
            used NUMERIC NOT NULL,
            cost NUMERIC NOT NULL,
            recorded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (namespace, resource_name, window_start)
        )
        """,
        f"""
        CREATE INDEX IF NOT EXISTS idx_usage_records_window
            ON {schema}.usage_records (window_start)
        """,
    ]
