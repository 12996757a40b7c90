"""Coordinator for the three fleet aggregations and the derived fleet cards."""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..config import Settings
from ..models import CriticalVehicle, ErrorsPerVehicle, EventFilters, TimeRange, TopCode, VehicleCard
from ..services.aggregation_service import AggregationService
from ..services.fleet_classifier import classify_fleet
from .base import Coordinator, Status


@dataclass(frozen=True)
class AggregationState:
    """Results of one joined aggregation unit of work."""

    errors_per_vehicle: Tuple[ErrorsPerVehicle, ...] = ()
    top_codes: Tuple[TopCode, ...] = ()
    critical_vehicles: Tuple[CriticalVehicle, ...] = ()


@dataclass(frozen=True)
class AggregationSnapshot:
    status: Status = Status.IDLE
    seq: int = 0
    time_range: TimeRange = field(default_factory=TimeRange)
    aggregations: AggregationState = field(default_factory=AggregationState)
    fleet_cards: Tuple[VehicleCard, ...] = ()
    result_seq: int = 0
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status is Status.FETCHING


class AggregationCoordinator(Coordinator[AggregationSnapshot, AggregationState]):
    """Recomputes all aggregations whenever the time range changes.

    The three service calls run in parallel and are published together;
    if any one fails or the unit is superseded, nothing from it is applied.
    """

    name = "aggregation-coordinator"

    def __init__(
        self,
        service: AggregationService,
        debounce: float = 0.3,
        timeout: Optional[float] = 5.0,
    ):
        super().__init__(AggregationSnapshot(), debounce=debounce, timeout=timeout)
        self.service = service

    @classmethod
    def from_settings(
        cls, service: AggregationService, settings: Settings
    ) -> "AggregationCoordinator":
        return cls(service, debounce=settings.debounce_s, timeout=settings.fetch_timeout_s)

    def _request(self, state: AggregationSnapshot) -> TimeRange:
        return state.time_range

    async def _fetch(self, request: TimeRange) -> AggregationState:
        errors_per_vehicle, top_codes, critical_vehicles = await asyncio.gather(
            asyncio.to_thread(self.service.errors_per_vehicle, request),
            asyncio.to_thread(self.service.top_codes, request),
            asyncio.to_thread(self.service.critical_vehicles),
        )
        return AggregationState(
            errors_per_vehicle=tuple(errors_per_vehicle),
            top_codes=tuple(top_codes),
            critical_vehicles=tuple(critical_vehicles),
        )

    def _applied(self, result: AggregationState) -> dict:
        return {
            "aggregations": result,
            "fleet_cards": tuple(classify_fleet(result.errors_per_vehicle, result.critical_vehicles)),
        }

    def set_time_range(self, time_range: TimeRange) -> Optional[int]:
        """
        Trigger a recompute if ``time_range`` differs from the current one.

        Returns:
            Sequence number of the trigger, or None when nothing changed
        """
        if self._state.seq > 0 and time_range == self._state.time_range:
            return None
        return self._trigger(time_range=time_range)

    def set_filters(self, filters: EventFilters) -> Optional[int]:
        """Observe an event-filter change; only its time range matters here."""
        return self.set_time_range(filters.time_range)

    def refresh(self) -> int:
        return self._trigger()

    @property
    def fleet_cards(self) -> List[VehicleCard]:
        return list(self._state.fleet_cards)
