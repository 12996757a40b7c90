"""Shared fixtures."""

import pytest

from fleet_diagnostics.services.aggregation_service import AggregationService
from fleet_diagnostics.services.query_service import QueryService
from fleet_diagnostics.store.parquet_store import ParquetEventStore

from factories import fleet_entries


@pytest.fixture
def entries():
    return fleet_entries()


@pytest.fixture
def store(entries):
    """In-memory store holding the mixed fleet."""
    return ParquetEventStore.from_entries(entries)


@pytest.fixture
def empty_store():
    return ParquetEventStore()


@pytest.fixture
def query_service(store):
    return QueryService(store)


@pytest.fixture
def aggregation_service(store):
    return AggregationService(store)
