"""Aggregations router."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_aggregation_service
from ..models import CriticalVehicle, ErrorsPerVehicle, Level, TimeRange, TopCode
from ..services.aggregation_service import AggregationService

router = APIRouter()


@router.get("/errors-per-vehicle", response_model=List[ErrorsPerVehicle])
async def errors_per_vehicle(
    from_time: Optional[datetime] = Query(None, alias="from"),
    to_time: Optional[datetime] = Query(None, alias="to"),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Get event counts per vehicle broken down by severity."""
    return await run_in_threadpool(service.errors_per_vehicle, TimeRange(from_time, to_time))


@router.get("/top-codes", response_model=List[TopCode])
async def top_codes(
    level: Optional[Level] = Query(None),
    from_time: Optional[datetime] = Query(None, alias="from"),
    to_time: Optional[datetime] = Query(None, alias="to"),
    service: AggregationService = Depends(get_aggregation_service),
):
    """Get the 10 most frequent diagnostic codes."""
    return await run_in_threadpool(service.top_codes, TimeRange(from_time, to_time), level)


@router.get("/critical-vehicles", response_model=List[CriticalVehicle])
async def critical_vehicles(service: AggregationService = Depends(get_aggregation_service)):
    """Get vehicles with 3+ ERROR events in the 24h before the latest event."""
    return await run_in_threadpool(service.critical_vehicles)
