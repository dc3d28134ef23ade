"""Usage feature - usage samples, cost records and the aggregator."""

from .entities import UsageRecord, UsageSample, TelemetrySource, UsageRecordRepository
from .repositories import InMemoryUsageRepository, UsageDatabaseRepository
from .services import SampleBuffer, UnitPriceTable, UsageAggregator, linear_pricing

__all__ = [
    "UsageRecord",
    "UsageSample",
    "TelemetrySource",
    "UsageRecordRepository",
    "InMemoryUsageRepository",
    "UsageDatabaseRepository",
    "SampleBuffer",
    "UnitPriceTable",
    "UsageAggregator",
    "linear_pricing",
]
