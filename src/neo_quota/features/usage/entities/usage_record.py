"""Usage sample and usage record entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Tuple


UsageKey = Tuple[str, str, datetime]


@dataclass(frozen=True)
class UsageSample:
    """One point-in-time reading of a namespace's resource usage.

    ``requested`` and ``used`` are in base units (cores, bytes, counts).
    """

    namespace: str
    resource_name: str
    requested: Decimal
    used: Decimal
    sampled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class UsageRecord:
    """Aggregated usage and cost of one resource over one window.

    Records are immutable once appended; re-aggregating the same window
    produces a record with the same key that replaces the earlier one.
    """

    namespace: str
    resource_name: str
    window_start: datetime
    window_end: datetime
    requested: Decimal
    used: Decimal
    cost: Decimal

    def __post_init__(self):
        if self.window_end <= self.window_start:
            raise ValueError("window_end must be after window_start")

    @property
    def key(self) -> UsageKey:
        return (self.namespace, self.resource_name, self.window_start)

    @property
    def window_hours(self) -> Decimal:
        return Decimal(int((self.window_end - self.window_start).total_seconds())) / Decimal(3600)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "resource_name": self.resource_name,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "requested": str(self.requested),
            "used": str(self.used),
            "cost": str(self.cost),
        }
