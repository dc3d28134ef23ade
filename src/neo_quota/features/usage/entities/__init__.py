from .usage_record import UsageKey, UsageRecord, UsageSample
from .protocols import TelemetrySource, UsageRecordRepository

__all__ = [
    "UsageKey",
    "UsageRecord",
    "UsageSample",
    "TelemetrySource",
    "UsageRecordRepository",
]
