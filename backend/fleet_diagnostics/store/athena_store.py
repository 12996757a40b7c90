"""Cloud-mode event store backed by an Athena table.

Expected table layout (one row per event)::

    id bigint, timestamp bigint (ns since epoch), vehicle_id string,
    level string, code string, message string

Column names come from a whitelist and every value travels as an Athena
execution parameter, so no caller-supplied text is spliced into SQL.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..athena_client import AthenaClient
from ..models import DiagnosticEvent, as_utc
from .query import COLUMNS, Op, Predicate, SortKey

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_OPERATORS = {Op.EQ: "=", Op.GTE: ">=", Op.LTE: "<="}


def _ident(column: str) -> str:
    if column not in COLUMNS:
        raise ValueError(f"Unknown column: {column}")
    return f'"{column}"'


def to_ns(value: datetime) -> int:
    """Nanoseconds since epoch for ``value`` (naive values taken as UTC)."""
    delta = as_utc(value) - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def from_ns(value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return _EPOCH + timedelta(microseconds=int(value) // 1000)


def to_literal(value: Any) -> str:
    """Render ``value`` as an Athena execution-parameter literal."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, datetime):
        return str(to_ns(value))
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def build_where(predicates: Sequence[Predicate]) -> Tuple[str, List[str]]:
    """
    Translate predicates into a WHERE clause.

    Args:
        predicates: AND-combined predicates

    Returns:
        Tuple of (clause, parameters); clause is empty when there are no predicates
    """
    clauses = []
    parameters = []
    for predicate in predicates:
        column = _ident(predicate.column)
        if predicate.op is Op.IEQ:
            clauses.append(f"UPPER({column}) = UPPER(?)")
        else:
            clauses.append(f"{column} {_OPERATORS[predicate.op]} ?")
        parameters.append(to_literal(predicate.value))

    if not clauses:
        return "", parameters
    return "WHERE " + " AND ".join(clauses), parameters


class AthenaEventStore:
    """Event store issuing one Athena query per read."""

    def __init__(self, client: AthenaClient, table: str = "diagnostic_events"):
        """
        Initialize store.

        Args:
            client: Athena client bound to the events database
            table: Events table name
        """
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.client = client
        self.table = table

    def _row_to_event(self, row: Dict[str, Optional[str]]) -> DiagnosticEvent:
        return DiagnosticEvent(
            id=int(row["id"]),
            timestamp=from_ns(row["timestamp"]),
            vehicle_id=row["vehicle_id"],
            level=row["level"],
            code=row["code"],
            message=row["message"] or "",
        )

    def count(self, predicates: Sequence[Predicate] = ()) -> int:
        where, parameters = build_where(predicates)
        sql = f"SELECT COUNT(*) AS count FROM {self.table} {where}"
        rows = self.client.run_query(sql, parameters)
        return int(rows[0]["count"]) if rows else 0

    def find(
        self,
        predicates: Sequence[Predicate],
        order_by: Sequence[SortKey],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[DiagnosticEvent], int]:
        where, parameters = build_where(predicates)
        columns = ", ".join(_ident(c) for c in COLUMNS)

        # Total comes back on every row from the same scan
        sql = f"SELECT {columns}, COUNT(*) OVER () AS total_count FROM {self.table} {where}"
        if order_by:
            order = ", ".join(
                f"{_ident(key.column)} {'DESC' if key.descending else 'ASC'}" for key in order_by
            )
            sql += f" ORDER BY {order}"
        if offset:
            sql += f" OFFSET {int(offset)}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        rows = self.client.run_query(sql, parameters)
        events = [self._row_to_event(row) for row in rows]

        if rows:
            total = int(rows[0]["total_count"])
        elif offset:
            # Page past the end: no row carried the total
            total = self.count(predicates)
        else:
            total = 0

        return events, total

    def group_count(
        self, predicates: Sequence[Predicate], keys: Sequence[str]
    ) -> List[Dict[str, Any]]:
        where, parameters = build_where(predicates)
        key_columns = ", ".join(_ident(key) for key in keys)

        sql = f"""
        SELECT {key_columns},
               COUNT(*) AS count,
               MIN("timestamp") AS first_seen,
               MAX("timestamp") AS last_seen
        FROM {self.table}
        {where}
        GROUP BY {key_columns}
        """

        rows = self.client.run_query(sql, parameters)
        return [
            {
                **{key: row[key] for key in keys},
                "count": int(row["count"]),
                "first_seen": from_ns(row["first_seen"]),
                "last_seen": from_ns(row["last_seen"]),
            }
            for row in rows
        ]

    def time_bounds(
        self, predicates: Sequence[Predicate] = ()
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        where, parameters = build_where(predicates)
        sql = (
            f'SELECT MIN("timestamp") AS first_seen, MAX("timestamp") AS last_seen '
            f"FROM {self.table} {where}"
        )
        rows = self.client.run_query(sql, parameters)
        if not rows:
            return None, None
        return from_ns(rows[0]["first_seen"]), from_ns(rows[0]["last_seen"])
