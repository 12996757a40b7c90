"""Structured store queries.

Filters reach a store as a list of ``Predicate`` values over whitelisted
columns, never as query text, so every backend can translate them safely
and tests can inspect exactly what was asked for.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..models import DiagnosticEvent, EventFilters, TimeRange

# Stored column names
COLUMNS = ("id", "timestamp", "vehicle_id", "level", "code", "message")


class Op(str, Enum):
    """Comparison applied by a predicate."""

    EQ = "eq"
    IEQ = "ieq"  # case-insensitive equality
    GTE = "gte"
    LTE = "lte"


@dataclass(frozen=True)
class Predicate:
    """``column <op> value``."""

    column: str
    op: Op
    value: Any

    def __post_init__(self) -> None:
        if self.column not in COLUMNS:
            raise ValueError(f"Unknown column: {self.column}")


@dataclass(frozen=True)
class SortKey:
    column: str
    descending: bool = False

    def __post_init__(self) -> None:
        if self.column not in COLUMNS:
            raise ValueError(f"Unknown column: {self.column}")


def time_range_predicates(time_range: TimeRange) -> List[Predicate]:
    """Inclusive bounds on ``timestamp`` for whichever sides are set."""
    predicates = []
    if time_range.from_time is not None:
        predicates.append(Predicate("timestamp", Op.GTE, time_range.from_time))
    if time_range.to_time is not None:
        predicates.append(Predicate("timestamp", Op.LTE, time_range.to_time))
    return predicates


def filter_predicates(filters: EventFilters) -> List[Predicate]:
    """AND-combined predicates for every defined filter."""
    predicates = []
    if filters.vehicle_id is not None:
        predicates.append(Predicate("vehicle_id", Op.EQ, filters.vehicle_id))
    if filters.code is not None:
        predicates.append(Predicate("code", Op.EQ, filters.code))
    if filters.level is not None:
        predicates.append(Predicate("level", Op.EQ, filters.level.value))
    predicates.extend(time_range_predicates(filters.time_range))
    return predicates


class EventStore(Protocol):
    """Read interface every backing store provides.

    Implementations must be safe to call from several threads at once.
    """

    def count(self, predicates: Sequence[Predicate] = ()) -> int:
        ...

    def find(
        self,
        predicates: Sequence[Predicate],
        order_by: Sequence[SortKey],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[DiagnosticEvent], int]:
        """Return the requested window of matching events and the total match count."""
        ...

    def group_count(
        self, predicates: Sequence[Predicate], keys: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """Group matching events by ``keys``.

        Each row holds the key columns plus ``count``, ``first_seen`` and
        ``last_seen``. Row order is unspecified.
        """
        ...

    def time_bounds(
        self, predicates: Sequence[Predicate] = ()
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Minimum and maximum ``timestamp`` of matching events (``None`` when empty)."""
        ...


def describe(predicates: Iterable[Predicate]) -> str:
    """Short human-readable form, used in log lines."""
    return " AND ".join(f"{p.column} {p.op.value} {p.value!r}" for p in predicates) or "<all>"
