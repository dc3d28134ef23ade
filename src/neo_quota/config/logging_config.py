"""Logging setup for the controller process.

Verbosity and format come from the environment so the same image can run
quietly in production and with full watch/reconcile traces while debugging:

    LOG_VERBOSITY   QUIET | NORMAL | VERBOSE | DEBUG   (default NORMAL)
    LOG_FORMAT      simple | detailed | json          (default simple)
    LOG_QUIET_MODULES  extra comma-separated logger names held at WARNING
    ENABLE_SQL_LOGGING true to let asyncpg log below WARNING
"""

import logging
import logging.config
import os
from enum import Enum
from typing import Any, Dict, List


class LogVerbosity(str, Enum):
    """Log verbosity modes."""
    QUIET = "QUIET"      # errors only
    NORMAL = "NORMAL"
    VERBOSE = "VERBOSE"  # includes per-object watch chatter
    DEBUG = "DEBUG"


class LogFormat(str, Enum):
    """Log format options."""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


FORMATS: Dict[LogFormat, str] = {
    LogFormat.SIMPLE: "%(asctime)s - %(levelname)s - %(message)s",
    LogFormat.DETAILED: "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
    LogFormat.JSON: '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
}

LEVELS: Dict[LogVerbosity, str] = {
    LogVerbosity.QUIET: "ERROR",
    LogVerbosity.NORMAL: "INFO",
    LogVerbosity.VERBOSE: "INFO",
    LogVerbosity.DEBUG: "DEBUG",
}


def _parse_verbosity(value: str) -> LogVerbosity:
    try:
        return LogVerbosity(value.upper())
    except ValueError:
        return LogVerbosity.NORMAL


def _parse_format(value: str) -> LogFormat:
    try:
        return LogFormat(value.lower())
    except ValueError:
        return LogFormat.SIMPLE


class LoggingConfig:
    """Builds and applies the process-wide logging configuration."""

    # Controller modules that log every watch event and applied object
    WATCH_MODULES = [
        "neo_quota.features.cluster.services.observer_service",
        "neo_quota.features.cluster.adapters",
        "neo_quota.features.reconciliation.services.plan_executor",
    ]

    # Third-party clients that only get to report errors
    CLIENT_MODULES = [
        "kubernetes",
        "urllib3",
        "asyncio",
        "httpx",
    ]

    @staticmethod
    def _logger_entry(level: str) -> Dict[str, Any]:
        return {"level": level, "handlers": ["console"], "propagate": False}

    @classmethod
    def build(
        cls,
        verbosity: LogVerbosity = LogVerbosity.NORMAL,
        log_format: LogFormat = LogFormat.SIMPLE,
        sql_logging: bool = False,
        extra_quiet: List[str] = None,
    ) -> Dict[str, Any]:
        """Return a ``dictConfig`` mapping for the given options."""
        level = LEVELS[verbosity]
        loggers: Dict[str, Any] = {}

        quiet = list(extra_quiet or [])
        if verbosity not in (LogVerbosity.VERBOSE, LogVerbosity.DEBUG):
            quiet.extend(cls.WATCH_MODULES)
        for module in quiet:
            loggers[module] = cls._logger_entry("WARNING")
        for module in cls.CLIENT_MODULES:
            loggers[module] = cls._logger_entry("ERROR")
        if not sql_logging:
            loggers["asyncpg"] = cls._logger_entry("WARNING")

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": FORMATS[log_format], "datefmt": "%Y-%m-%d %H:%M:%S"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": loggers,
        }

    @classmethod
    def configure(cls) -> None:
        """Apply the configuration described by the environment."""
        verbosity = _parse_verbosity(os.getenv("LOG_VERBOSITY", "NORMAL"))
        log_format = _parse_format(os.getenv("LOG_FORMAT", "simple"))
        extra = [m.strip() for m in os.getenv("LOG_QUIET_MODULES", "").split(",") if m.strip()]

        logging.config.dictConfig(cls.build(
            verbosity,
            log_format,
            sql_logging=os.getenv("ENABLE_SQL_LOGGING", "false").lower() == "true",
            extra_quiet=extra,
        ))
        logging.getLogger(__name__).debug(
            f"Logging configured: verbosity={verbosity.value}, format={log_format.value}"
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        return logging.getLogger(name)

    @classmethod
    def set_module_level(cls, module_name: str, level: str) -> None:
        """Change one logger's level at runtime."""
        logging.getLogger(module_name).setLevel(getattr(logging, level.upper()))

    @classmethod
    def silence_module(cls, module_name: str) -> None:
        cls.set_module_level(module_name, "CRITICAL")


def setup_logging() -> None:
    """Configure logging once at process startup."""
    LoggingConfig.configure()


def get_logger(name: str) -> logging.Logger:
    return LoggingConfig.get_logger(name)
