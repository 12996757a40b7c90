"""Fleet-wide aggregations and the per-vehicle summary."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..errors import InternalStoreError
from ..models import (
    CriticalVehicle,
    ErrorsPerVehicle,
    EventFilters,
    Level,
    QuerySpec,
    SortField,
    SortOrder,
    TimeRange,
    TopCode,
    VehicleSummary,
)
from ..store.query import EventStore, Op, Predicate, time_range_predicates
from .query_service import order_for

logger = logging.getLogger(__name__)

# Critical rule: this many ERROR events within the trailing window
CRITICAL_ERROR_THRESHOLD = 3
CRITICAL_WINDOW = timedelta(hours=24)

TOP_CODES_LIMIT = 10
RECENT_EVENTS_LIMIT = 10


def _checked_count(row: Dict[str, Any]) -> int:
    count = row["count"]
    if count is None or count < 0:
        raise InternalStoreError(f"Store returned invalid count {count!r} for group {row!r}")
    return int(count)


def _rank_top_codes(rows: List[Dict[str, Any]]) -> List[TopCode]:
    """count DESC, code ASC, level ASC; first TOP_CODES_LIMIT rows."""
    codes = [
        TopCode(code=row["code"], count=_checked_count(row), level=row["level"])
        for row in rows
    ]
    codes.sort(key=lambda c: (-c.count, c.code, c.level.value))
    return codes[:TOP_CODES_LIMIT]


class AggregationService:
    """Read-only aggregations over the event store.

    Every method is an independent read with no shared mutable state, so
    one instance may serve any number of concurrent callers.
    """

    def __init__(self, store: EventStore, max_workers: int = 4):
        """
        Initialize service.

        Args:
            store: Event store handle
            max_workers: Threads used for the parallel reads of vehicle_summary
        """
        self.store = store
        self.max_workers = max_workers

    def errors_per_vehicle(self, time_range: TimeRange = TimeRange()) -> List[ErrorsPerVehicle]:
        """
        Severity counts per vehicle, busiest first.

        Vehicles without matching events are omitted.
        """
        rows = self.store.group_count(
            time_range_predicates(time_range), ["vehicle_id", "level"]
        )

        counts: Dict[str, Dict[str, int]] = {}
        for row in rows:
            per_level = counts.setdefault(row["vehicle_id"], {level.value: 0 for level in Level})
            per_level[row["level"]] = per_level.get(row["level"], 0) + _checked_count(row)

        result = [
            ErrorsPerVehicle(
                vehicle_id=vehicle_id,
                error_count=per_level[Level.ERROR.value],
                warn_count=per_level[Level.WARN.value],
                info_count=per_level[Level.INFO.value],
                total=sum(per_level.values()),
            )
            for vehicle_id, per_level in counts.items()
        ]
        result.sort(key=lambda v: (-v.total, v.vehicle_id))
        return result

    def top_codes(
        self,
        time_range: TimeRange = TimeRange(),
        level: Optional[Level] = None,
        vehicle_id: Optional[str] = None,
        code: Optional[str] = None,
    ) -> List[TopCode]:
        """
        Most frequent (code, level) pairs, at most TOP_CODES_LIMIT rows.

        Args:
            time_range: Inclusive time bounds
            level: Exact severity filter
            vehicle_id: Case-insensitive vehicle filter
            code: Case-insensitive code filter
        """
        predicates = time_range_predicates(time_range)
        if code is not None:
            predicates.append(Predicate("code", Op.IEQ, code))
        if vehicle_id is not None:
            predicates.append(Predicate("vehicle_id", Op.IEQ, vehicle_id))
        if level is not None:
            predicates.append(Predicate("level", Op.EQ, Level(level).value))

        return _rank_top_codes(self.store.group_count(predicates, ["code", "level"]))

    def critical_vehicles(self) -> List[CriticalVehicle]:
        """
        Vehicles with at least CRITICAL_ERROR_THRESHOLD errors in the critical window.

        The window ends at the latest event timestamp in the store, not at
        the current time, so results are reproducible on historical data.
        """
        _, latest = self.store.time_bounds()
        if latest is None:
            return []

        window_start = latest - CRITICAL_WINDOW
        rows = self.store.group_count(
            [
                Predicate("level", Op.EQ, Level.ERROR.value),
                Predicate("timestamp", Op.GTE, window_start),
                Predicate("timestamp", Op.LTE, latest),
            ],
            ["vehicle_id"],
        )

        critical = [
            CriticalVehicle(
                vehicle_id=row["vehicle_id"],
                error_count=_checked_count(row),
                latest_error=row["last_seen"],
            )
            for row in rows
            if _checked_count(row) >= CRITICAL_ERROR_THRESHOLD
        ]
        critical.sort(key=lambda v: (-v.error_count, v.vehicle_id))

        logger.debug(
            f"Critical window [{window_start.isoformat()}, {latest.isoformat()}]: "
            f"{len(critical)} vehicles"
        )
        return critical

    def vehicle_summary(self, vehicle_id: str) -> Optional[VehicleSummary]:
        """
        Detail view for one vehicle.

        The four underlying reads are independent and run concurrently.

        Returns:
            Summary, or None when the vehicle has no events
        """
        predicates = [Predicate("vehicle_id", Op.EQ, vehicle_id)]
        recent_spec = QuerySpec(
            filters=EventFilters(vehicle_id=vehicle_id),
            sort_by=SortField.TIMESTAMP,
            sort_order=SortOrder.DESC,
            limit=RECENT_EVENTS_LIMIT,
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            levels_future = pool.submit(self.store.group_count, predicates, ["level"])
            bounds_future = pool.submit(self.store.time_bounds, predicates)
            codes_future = pool.submit(self.store.group_count, predicates, ["code", "level"])
            recent_future = pool.submit(
                self.store.find, predicates, order_for(recent_spec), 0, RECENT_EVENTS_LIMIT
            )

            level_rows = levels_future.result()
            first_seen, last_seen = bounds_future.result()
            code_rows = codes_future.result()
            recent_events, _ = recent_future.result()

        per_level = {level.value: 0 for level in Level}
        for row in level_rows:
            per_level[row["level"]] = per_level.get(row["level"], 0) + _checked_count(row)
        total = sum(per_level.values())

        if total == 0:
            return None
        if first_seen is None or last_seen is None:
            raise InternalStoreError(f"Vehicle {vehicle_id} has {total} events but no time bounds")

        return VehicleSummary(
            vehicle_id=vehicle_id,
            error_count=per_level[Level.ERROR.value],
            warn_count=per_level[Level.WARN.value],
            info_count=per_level[Level.INFO.value],
            total=total,
            first_seen=first_seen,
            last_seen=last_seen,
            top_codes=_rank_top_codes(code_rows),
            recent_events=recent_events,
        )

