"""Tests for the local Parquet-backed event store."""

from datetime import timedelta

import pyarrow.parquet as pq
import pytest

from fleet_diagnostics.models import Level
from fleet_diagnostics.store.parquet_store import EVENT_SCHEMA, ParquetEventStore
from fleet_diagnostics.store.query import Op, Predicate, SortKey

from factories import T0, entry


def test_append_assigns_monotonic_ids(store):
    """Ids start at 1 and keep increasing across appends."""
    events, total = store.find([], [SortKey("id")])
    assert [e.id for e in events] == list(range(1, total + 1))

    store.append([entry(100), entry(110)])
    events, _ = store.find([], [SortKey("id", descending=True)], limit=2)
    assert [e.id for e in events] == [total + 2, total + 1]


def test_append_nothing(empty_store):
    assert empty_store.append([]) == 0
    assert empty_store.count() == 0


def test_count_with_predicates(store):
    assert store.count() == 10
    assert store.count([Predicate("vehicle_id", Op.EQ, "VH-1001")]) == 4
    assert store.count([
        Predicate("vehicle_id", Op.EQ, "VH-1001"),
        Predicate("level", Op.EQ, Level.ERROR),
    ]) == 2


def test_exact_match_is_case_sensitive(store):
    assert store.count([Predicate("vehicle_id", Op.EQ, "vh-1001")]) == 0
    assert store.count([Predicate("vehicle_id", Op.IEQ, "vh-1001")]) == 4


def test_time_predicates_are_inclusive(store):
    predicates = [
        Predicate("timestamp", Op.GTE, T0 + timedelta(minutes=10)),
        Predicate("timestamp", Op.LTE, T0 + timedelta(minutes=30)),
    ]
    events, total = store.find(predicates, [SortKey("timestamp")])

    assert total == 3
    assert [e.timestamp for e in events] == [
        T0 + timedelta(minutes=10),
        T0 + timedelta(minutes=20),
        T0 + timedelta(minutes=30),
    ]


def test_find_slices_after_sorting(store):
    events, total = store.find([], [SortKey("timestamp", descending=True)], offset=2, limit=3)

    assert total == 10
    assert [e.timestamp for e in events] == [
        T0 + timedelta(minutes=70),
        T0 + timedelta(minutes=60),
        T0 + timedelta(minutes=50),
    ]


def test_find_past_end_keeps_total(store):
    events, total = store.find([], [SortKey("id")], offset=50, limit=10)

    assert events == []
    assert total == 10


def test_group_count(store):
    rows = store.group_count([Predicate("vehicle_id", Op.EQ, "VH-1001")], ["level"])
    by_level = {row["level"]: row for row in rows}

    assert by_level["ERROR"]["count"] == 2
    assert by_level["ERROR"]["first_seen"] == T0
    assert by_level["ERROR"]["last_seen"] == T0 + timedelta(minutes=10)
    assert by_level["WARN"]["count"] == 1
    assert by_level["INFO"]["count"] == 1


def test_group_count_empty(store):
    assert store.group_count([Predicate("vehicle_id", Op.EQ, "VH-9999")], ["level"]) == []


def test_group_count_rejects_unknown_key(store):
    with pytest.raises(ValueError):
        store.group_count([], ["mileage"])


def test_time_bounds(store, empty_store):
    assert store.time_bounds() == (T0, T0 + timedelta(minutes=90))
    assert store.time_bounds([Predicate("vehicle_id", Op.EQ, "VH-1002")]) == (
        T0 + timedelta(minutes=40),
        T0 + timedelta(minutes=60),
    )
    assert empty_store.time_bounds() == (None, None)


def test_unknown_column_rejected():
    with pytest.raises(ValueError):
        Predicate("mileage", Op.EQ, 1)
    with pytest.raises(ValueError):
        SortKey("mileage")


def test_persists_and_reloads(tmp_path, entries):
    """Appends are written through to Parquet and survive a reopen."""
    path = tmp_path / "data" / "events.parquet"

    store = ParquetEventStore.open(path)
    assert store.count() == 0
    store.append(entries)

    assert path.exists()
    assert pq.read_schema(path).names == EVENT_SCHEMA.names

    reopened = ParquetEventStore.open(path)
    assert reopened.count() == len(entries)
    written, _ = store.find([], [SortKey("id")])
    reloaded, _ = reopened.find([], [SortKey("id")])
    assert reloaded == written

    reopened.append([entry(200)])
    newest, _ = reopened.find([], [SortKey("id", descending=True)], limit=1)
    assert newest[0].id == len(entries) + 1
