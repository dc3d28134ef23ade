"""Configuration for neo-quota: settings, constants and logging."""

from .constants import (
    ObjectKind,
    APPLY_ORDER,
    MANAGED_KINDS,
    ManagedLabels,
    ObjectNames,
    QuotaResources,
    ReconcileDefaults,
    RESERVED_PREFIX,
)
from .settings import ControllerSettings, get_settings
from .logging_config import LoggingConfig, setup_logging, get_logger

__all__ = [
    "ObjectKind",
    "APPLY_ORDER",
    "MANAGED_KINDS",
    "ManagedLabels",
    "ObjectNames",
    "QuotaResources",
    "ReconcileDefaults",
    "RESERVED_PREFIX",
    "ControllerSettings",
    "get_settings",
    "LoggingConfig",
    "setup_logging",
    "get_logger",
]
