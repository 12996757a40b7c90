"""Local-mode event store: an in-memory Arrow table persisted as Parquet."""

import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from ..log_parser import ParsedLogEntry
from ..models import DiagnosticEvent, as_utc
from .query import COLUMNS, Op, Predicate, SortKey, describe

logger = logging.getLogger(__name__)

EVENT_SCHEMA = pa.schema([
    ("id", pa.int64()),
    ("timestamp", pa.timestamp("us", tz="UTC")),
    ("vehicle_id", pa.string()),
    ("level", pa.string()),
    ("code", pa.string()),
    ("message", pa.string()),
])


class ParquetEventStore:
    """Append-only event table with vectorized filter/sort/group-by.

    Readers work on the table reference they picked up when the call
    started; ``append`` swaps in a new table, so a read never observes a
    half-applied batch.
    """

    def __init__(self, table: Optional[pa.Table] = None, path: Optional[Union[str, Path]] = None):
        """
        Initialize store.

        Args:
            table: Initial contents (must carry every column of EVENT_SCHEMA)
            path: Parquet file that appends are persisted to (None for memory only)
        """
        if table is None:
            self._table = EVENT_SCHEMA.empty_table()
        else:
            self._table = table.select(list(COLUMNS)).cast(EVENT_SCHEMA)
        self.path = Path(path) if path is not None else None
        self._write_lock = threading.Lock()

    @classmethod
    def open(cls, path: Union[str, Path]) -> "ParquetEventStore":
        """Load a store from ``path``, starting empty if the file does not exist yet."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No event file at {path}, starting with an empty store")
            return cls(path=path)

        table = pq.read_table(path)
        logger.info(f"Loaded {table.num_rows} events from {path}")
        return cls(table, path=path)

    @classmethod
    def from_entries(cls, entries: Iterable[ParsedLogEntry]) -> "ParquetEventStore":
        """Build an in-memory store holding ``entries``."""
        store = cls()
        store.append(entries)
        return store

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def append(self, entries: Iterable[ParsedLogEntry]) -> int:
        """
        Append entries, assigning monotonically increasing ids.

        Args:
            entries: Parsed entries in insertion order

        Returns:
            Number of events appended
        """
        entries = list(entries)
        if not entries:
            return 0

        with self._write_lock:
            current = self._table
            first_id = 1 if current.num_rows == 0 else pc.max(current.column("id")).as_py() + 1

            batch = pa.table({
                "id": pa.array(range(first_id, first_id + len(entries)), type=pa.int64()),
                "timestamp": pa.array(
                    [as_utc(e.timestamp) for e in entries], type=pa.timestamp("us", tz="UTC")
                ),
                "vehicle_id": pa.array([e.vehicle_id for e in entries], type=pa.string()),
                "level": pa.array([e.level.value for e in entries], type=pa.string()),
                "code": pa.array([e.code for e in entries], type=pa.string()),
                "message": pa.array([e.message for e in entries], type=pa.string()),
            }, schema=EVENT_SCHEMA)

            table = pa.concat_tables([current, batch])
            if self.path is not None:
                self._write(table)
            self._table = table

        logger.info(f"Appended {len(entries)} events (ids {first_id}..{first_id + len(entries) - 1})")
        return len(entries)

    def _write(self, table: pa.Table) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        pq.write_table(
            table,
            tmp_path,
            compression="zstd",
            compression_level=3,
            use_dictionary=True,
            write_statistics=True,
        )
        tmp_path.replace(self.path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _scalar(column: str, value: Any) -> pa.Scalar:
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, datetime):
            value = as_utc(value)
        return pa.scalar(value, type=EVENT_SCHEMA.field(column).type)

    def _filtered(self, predicates: Sequence[Predicate]) -> pa.Table:
        table = self._table
        mask = None

        for predicate in predicates:
            column = table.column(predicate.column)
            if predicate.op is Op.IEQ:
                condition = pc.equal(
                    pc.utf8_upper(column), pa.scalar(str(predicate.value).upper())
                )
            else:
                value = self._scalar(predicate.column, predicate.value)
                if predicate.op is Op.EQ:
                    condition = pc.equal(column, value)
                elif predicate.op is Op.GTE:
                    condition = pc.greater_equal(column, value)
                else:
                    condition = pc.less_equal(column, value)
            mask = condition if mask is None else pc.and_(mask, condition)

        if mask is None:
            return table

        filtered = table.filter(mask)
        logger.debug(f"Filter [{describe(predicates)}]: {filtered.num_rows}/{table.num_rows} rows")
        return filtered

    def count(self, predicates: Sequence[Predicate] = ()) -> int:
        return self._filtered(predicates).num_rows

    def find(
        self,
        predicates: Sequence[Predicate],
        order_by: Sequence[SortKey],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[DiagnosticEvent], int]:
        table = self._filtered(predicates)
        total = table.num_rows

        if order_by and total:
            table = table.sort_by([
                (key.column, "descending" if key.descending else "ascending") for key in order_by
            ])

        table = table.slice(offset, limit)
        return [DiagnosticEvent(**row) for row in table.to_pylist()], total

    def group_count(
        self, predicates: Sequence[Predicate], keys: Sequence[str]
    ) -> List[Dict[str, Any]]:
        for key in keys:
            if key not in COLUMNS:
                raise ValueError(f"Unknown column: {key}")

        table = self._filtered(predicates)
        if table.num_rows == 0:
            return []

        grouped = table.group_by(list(keys)).aggregate([
            ("id", "count"),
            ("timestamp", "min"),
            ("timestamp", "max"),
        ])

        rows = []
        for row in grouped.to_pylist():
            out = {key: row[key] for key in keys}
            out["count"] = row["id_count"]
            out["first_seen"] = row["timestamp_min"]
            out["last_seen"] = row["timestamp_max"]
            rows.append(out)
        return rows

    def time_bounds(
        self, predicates: Sequence[Predicate] = ()
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        table = self._filtered(predicates)
        if table.num_rows == 0:
            return None, None

        bounds = pc.min_max(table.column("timestamp"))
        return bounds["min"].as_py(), bounds["max"].as_py()
