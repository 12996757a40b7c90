"""Health classification of the fleet (pure, no I/O)."""

from typing import Iterable, List, Sequence

from ..models import CriticalVehicle, ErrorsPerVehicle, HealthStatus, VehicleCard
from .aggregation_service import CRITICAL_ERROR_THRESHOLD

MAX_SUGGESTIONS = 6


def classify_fleet(
    errors_per_vehicle: Iterable[ErrorsPerVehicle],
    critical_vehicles: Iterable[CriticalVehicle],
) -> List[VehicleCard]:
    """
    Build one card per vehicle in ``errors_per_vehicle``, in the same order.

    CRITICAL if the vehicle is in the critical set, WARNING if it has any
    errors, HEALTHY otherwise.
    """
    critical_ids = {v.vehicle_id for v in critical_vehicles}

    cards = []
    for v in errors_per_vehicle:
        if v.vehicle_id in critical_ids:
            status = HealthStatus.CRITICAL
        elif v.error_count > 0:
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.HEALTHY

        cards.append(VehicleCard(
            vehicle_id=v.vehicle_id,
            error_count=v.error_count,
            warn_count=v.warn_count,
            info_count=v.info_count,
            total=v.total,
            health_status=status,
        ))
    return cards


def detail_health(error_count: int) -> HealthStatus:
    """Health of a single vehicle from its all-time error count."""
    if error_count >= CRITICAL_ERROR_THRESHOLD:
        return HealthStatus.CRITICAL
    if error_count > 0:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def filter_cards(cards: Sequence[VehicleCard], term: str) -> List[VehicleCard]:
    """Cards whose vehicle id contains ``term`` (case-insensitive); all cards for a blank term."""
    needle = term.strip().upper()
    if not needle:
        return list(cards)
    return [c for c in cards if needle in c.vehicle_id.upper()]


def suggest_vehicle_ids(
    cards: Sequence[VehicleCard], term: str, limit: int = MAX_SUGGESTIONS
) -> List[str]:
    if not term.strip():
        return []
    return [c.vehicle_id for c in filter_cards(cards, term)][:limit]
