"""Usage response models."""

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from ..entities.usage_record import UsageRecord


class UsageRecordResponse(BaseModel):
    """One aggregated usage/cost record."""

    namespace: str
    resource_name: str
    window_start: datetime
    window_end: datetime
    requested: Decimal = Field(..., description="Mean requested amount in base units")
    used: Decimal = Field(..., description="Mean used amount in base units")
    cost: Decimal

    @classmethod
    def from_entity(cls, record: UsageRecord) -> "UsageRecordResponse":
        return cls(
            namespace=record.namespace,
            resource_name=record.resource_name,
            window_start=record.window_start,
            window_end=record.window_end,
            requested=record.requested,
            used=record.used,
            cost=record.cost,
        )


class UsageRecordListResponse(BaseModel):
    records: List[UsageRecordResponse]
    total: int
    total_cost: Decimal
