"""Events router."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_query_service
from ..models import EventFilters, EventPage, Level, QuerySpec, SortField, SortOrder
from ..services.query_service import MAX_LIMIT, MIN_LIMIT, QueryService

router = APIRouter()


@router.get("/events", response_model=EventPage)
async def list_events(
    vehicle_id: Optional[str] = Query(None, alias="vehicleId", description="Exact vehicle ID"),
    code: Optional[str] = Query(None, description="Exact diagnostic code"),
    level: Optional[Level] = Query(None),
    from_time: Optional[datetime] = Query(None, alias="from", description="Start of range (ISO 8601)"),
    to_time: Optional[datetime] = Query(None, alias="to", description="End of range (ISO 8601)"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=MIN_LIMIT, le=MAX_LIMIT),
    sort_by: SortField = Query(SortField.TIMESTAMP, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    service: QueryService = Depends(get_query_service),
):
    """Query diagnostic events with filters and pagination."""
    spec = QuerySpec(
        filters=EventFilters(
            vehicle_id=vehicle_id,
            code=code,
            level=level,
            from_time=from_time,
            to_time=to_time,
        ),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return await run_in_threadpool(service.query, spec)
