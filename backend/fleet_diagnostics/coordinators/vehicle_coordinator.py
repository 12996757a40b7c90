"""Coordinator for the vehicle detail view."""

import asyncio
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..errors import VehicleNotFoundError
from ..models import HealthStatus, VehicleSummary
from ..services.aggregation_service import AggregationService
from ..services.fleet_classifier import detail_health
from .base import Coordinator, Status


@dataclass(frozen=True)
class VehicleDetailState:
    status: Status = Status.IDLE
    seq: int = 0
    vehicle_id: Optional[str] = None
    summary: Optional[VehicleSummary] = None
    health: Optional[HealthStatus] = None
    result_seq: int = 0
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status is Status.FETCHING


class VehicleDetailCoordinator(Coordinator[VehicleDetailState, VehicleSummary]):
    """Loads one vehicle summary at a time; a new vehicle supersedes the previous load."""

    name = "vehicle-coordinator"

    def __init__(self, service: AggregationService, timeout: Optional[float] = 5.0):
        super().__init__(VehicleDetailState(), debounce=0.0, timeout=timeout)
        self.service = service

    @classmethod
    def from_settings(
        cls, service: AggregationService, settings: Settings
    ) -> "VehicleDetailCoordinator":
        """Timeout from settings; vehicle detail never debounces."""
        return cls(service, timeout=settings.fetch_timeout_s)

    def _request(self, state: VehicleDetailState) -> str:
        return state.vehicle_id

    async def _fetch(self, request: str) -> VehicleSummary:
        summary = await asyncio.to_thread(self.service.vehicle_summary, request)
        if summary is None:
            raise VehicleNotFoundError(request)
        return summary

    def _applied(self, result: VehicleSummary) -> dict:
        return {"summary": result, "health": detail_health(result.error_count)}

    def load(self, vehicle_id: str) -> int:
        """Show ``vehicle_id``, clearing whatever detail was displayed before."""
        return self._trigger(vehicle_id=vehicle_id, summary=None, health=None)
