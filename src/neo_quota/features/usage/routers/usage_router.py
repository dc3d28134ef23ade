"""Usage record router (read side of the cost record stream)."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..entities.protocols import UsageRecordRepository
from ..models.responses import UsageRecordListResponse, UsageRecordResponse

usage_router = APIRouter(prefix="/usage", tags=["Usage"])


def get_usage_repository() -> UsageRecordRepository:
    """Placeholder, overridden by the application."""
    raise HTTPException(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        detail="Usage repository not configured",
    )


@usage_router.get("/records", response_model=UsageRecordListResponse)
async def list_usage_records(
    namespace: Optional[str] = Query(None, description="Only records of this namespace"),
    since: Optional[datetime] = Query(None, description="Only windows starting at or after this time"),
    repository: UsageRecordRepository = Depends(get_usage_repository),
) -> UsageRecordListResponse:
    records = await repository.find(namespace=namespace, since=since)
    return UsageRecordListResponse(
        records=[UsageRecordResponse.from_entity(r) for r in records],
        total=len(records),
        total_cost=sum((r.cost for r in records), Decimal(0)),
    )
