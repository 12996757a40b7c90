"""Vehicles router."""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_aggregation_service
from ..errors import VehicleNotFoundError
from ..models import VehicleCard, VehicleSummary
from ..services.aggregation_service import AggregationService
from ..services.fleet_classifier import classify_fleet, filter_cards

router = APIRouter()


@router.get("", response_model=List[VehicleCard])
async def list_vehicles(
    search: Optional[str] = Query(None, description="Case-insensitive vehicle ID substring"),
    service: AggregationService = Depends(get_aggregation_service),
):
    """List all vehicles with severity counts and health status."""
    errors_per_vehicle, critical = await asyncio.gather(
        run_in_threadpool(service.errors_per_vehicle),
        run_in_threadpool(service.critical_vehicles),
    )
    cards = classify_fleet(errors_per_vehicle, critical)
    if search:
        cards = filter_cards(cards, search)
    return cards


@router.get("/{vehicle_id}/summary", response_model=VehicleSummary)
async def vehicle_summary(
    vehicle_id: str,
    service: AggregationService = Depends(get_aggregation_service),
):
    """Get a detailed summary for a specific vehicle."""
    summary = await run_in_threadpool(service.vehicle_summary, vehicle_id)
    if summary is None:
        raise VehicleNotFoundError(vehicle_id)
    return summary
