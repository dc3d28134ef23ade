"""
Configuration management for the quota controller.

All tunables are read from the environment (prefix ``NEO_QUOTA_``) or an
optional ``.env`` file via pydantic-settings.
"""
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_AGGREGATION_PERIOD, RESERVED_PREFIX, ReconcileDefaults


class ControllerSettings(BaseSettings):
    """Settings for the reconciliation controller process."""

    model_config = SettingsConfigDict(
        env_prefix="NEO_QUOTA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core Application Settings
    app_name: str = Field(default="neo-quota-controller")
    environment: str = Field(default="development")

    # HTTP API
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Persistence (None selects in-memory stores)
    database_url: Optional[str] = Field(default=None)
    db_pool_min_size: int = Field(default=1, ge=1)
    db_pool_max_size: int = Field(default=10, ge=1)
    registry_schema: str = Field(default="quota_controller")

    # Operator alert channel
    redis_url: Optional[str] = Field(default=None)
    operator_channel: str = Field(default="neo-quota:degraded")

    # Registry policy
    reserved_prefix: str = Field(default=RESERVED_PREFIX)

    # Reconciliation
    backoff_base_seconds: float = Field(default=ReconcileDefaults.BACKOFF_BASE_SECONDS, gt=0)
    backoff_cap_seconds: float = Field(default=ReconcileDefaults.BACKOFF_CAP_SECONDS, gt=0)
    backoff_jitter: float = Field(default=ReconcileDefaults.BACKOFF_JITTER, ge=0, lt=1)
    max_consecutive_failures: int = Field(default=ReconcileDefaults.MAX_CONSECUTIVE_FAILURES, ge=0)
    max_conflict_retries: int = Field(default=ReconcileDefaults.MAX_CONFLICT_RETRIES, ge=0)
    allow_drift_deletion: bool = Field(default=False)
    delete_namespace_on_offboarding: bool = Field(default=False)

    # Observer
    relist_interval_seconds: float = Field(default=300.0, gt=0)

    # Usage aggregation
    aggregation_period_seconds: int = Field(default=DEFAULT_AGGREGATION_PERIOD, gt=0)
    unit_prices: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "cpu": Decimal("0.031611"),     # per core-hour
            "memory": Decimal("0.004237"),  # per GiB-hour
            "pods": Decimal("0"),
        }
    )

    # Cluster API: "kubernetes" or "memory" (dry runs, local development)
    cluster_backend: str = Field(default="kubernetes", pattern=r"^(kubernetes|memory)$")

    # Kubernetes client
    kube_in_cluster: bool = Field(default=False)
    kube_context: Optional[str] = Field(default=None)
    kube_config_file: Optional[str] = Field(default=None)

    @field_validator("reserved_prefix")
    @classmethod
    def validate_reserved_prefix(cls, v: str) -> str:
        if not v:
            raise ValueError("reserved_prefix cannot be empty")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def uses_database(self) -> bool:
        return bool(self.database_url)

    def backoff_policy(self):
        """Build the reconciliation backoff policy from these settings."""
        from ..features.reconciliation.services.backoff import BackoffPolicy

        return BackoffPolicy(
            base_seconds=self.backoff_base_seconds,
            cap_seconds=self.backoff_cap_seconds,
            jitter=self.backoff_jitter,
        )

    def pricing_table(self):
        """Build the unit price table used by the usage aggregator."""
        from ..features.usage.services.pricing import UnitPriceTable

        return UnitPriceTable(prices=dict(self.unit_prices))


@lru_cache()
def get_settings() -> ControllerSettings:
    """Get cached controller settings."""
    return ControllerSettings()
