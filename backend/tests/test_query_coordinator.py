"""Tests for the event list coordinator."""

import asyncio
import threading

import pytest

from fleet_diagnostics.config import Settings
from fleet_diagnostics.coordinators.base import Status
from fleet_diagnostics.coordinators.query_coordinator import QueryCoordinator
from fleet_diagnostics.errors import StoreQueryError
from fleet_diagnostics.models import DiagnosticEvent, EventFilters, EventPage, Level, SortField, SortOrder

from factories import T0


class FakeQueryService:
    """QueryService stand-in whose calls can be held open or failed per vehicle id."""

    def __init__(self):
        self.calls = []
        self.gates = {}
        self.started = {}
        self.failures = {}

    def hold(self, vehicle_id):
        self.gates[vehicle_id] = threading.Event()
        self.started[vehicle_id] = threading.Event()
        return self.gates[vehicle_id]

    def release_all(self):
        for gate in self.gates.values():
            gate.set()

    def query(self, spec):
        vehicle_id = spec.filters.vehicle_id
        self.calls.append(spec)
        if vehicle_id in self.started:
            self.started[vehicle_id].set()
            self.gates[vehicle_id].wait(5)
        if vehicle_id in self.failures:
            raise self.failures[vehicle_id]

        event = DiagnosticEvent(
            id=spec.page,
            timestamp=T0,
            vehicle_id=vehicle_id or "VH-0000",
            level=Level.INFO,
            code="P0100",
            message="Routine check",
        )
        return EventPage(data=[event], total=1, page=spec.page, limit=spec.limit)


@pytest.fixture
def service():
    fake = FakeQueryService()
    yield fake
    fake.release_all()


@pytest.mark.asyncio
async def test_initial_state():
    coordinator = QueryCoordinator(FakeQueryService())

    state = coordinator.state
    assert state.status is Status.IDLE
    assert state.page == 1
    assert state.limit == 20
    assert state.sort_by is SortField.TIMESTAMP
    assert state.sort_order is SortOrder.DESC
    assert state.events == ()
    assert not state.loading


@pytest.mark.asyncio
async def test_load_publishes_result(service):
    coordinator = QueryCoordinator(service, debounce=0.01)

    seq = coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))
    state = await coordinator.settled()

    assert state.status is Status.READY
    assert state.result_seq == seq
    assert state.error is None
    assert [e.vehicle_id for e in state.events] == ["VH-1001"]
    assert state.total == 1


@pytest.mark.asyncio
async def test_superseded_result_is_never_published(service):
    """A slow first request finishing after a second one never reaches the state."""
    gate_a = service.hold("VH-A")
    coordinator = QueryCoordinator(service, debounce=0.01)
    snapshots = []
    coordinator.subscribe(snapshots.append)

    coordinator.set_filters(EventFilters(vehicle_id="VH-A"))
    assert await asyncio.to_thread(service.started["VH-A"].wait, 2)
    assert coordinator.state.loading

    seq_b = coordinator.set_filters(EventFilters(vehicle_id="VH-B"))
    state = await coordinator.settled()
    gate_a.set()
    await asyncio.sleep(0.05)

    assert state.result_seq == seq_b
    assert [e.vehicle_id for e in coordinator.state.events] == ["VH-B"]
    assert coordinator.state.result_seq == seq_b
    assert all(e.vehicle_id != "VH-A" for s in snapshots for e in s.events)


@pytest.mark.asyncio
async def test_rapid_changes_collapse_into_one_request(service):
    coordinator = QueryCoordinator(service, debounce=0.05)

    for vehicle_id in ("VH-1001", "VH-1002", "VH-1003"):
        coordinator.set_filters(EventFilters(vehicle_id=vehicle_id))
    state = await coordinator.settled()

    assert [spec.filters.vehicle_id for spec in service.calls] == ["VH-1003"]
    assert state.seq == state.result_seq == 3


@pytest.mark.asyncio
async def test_filter_change_resets_page(service):
    coordinator = QueryCoordinator(service, debounce=0.01)

    coordinator.set_page(3)
    await coordinator.settled()
    assert service.calls[-1].page == 3

    coordinator.set_filters(EventFilters(code="P0300"))
    state = await coordinator.settled()

    assert state.page == 1
    assert service.calls[-1].page == 1
    assert service.calls[-1].filters.code == "P0300"


@pytest.mark.asyncio
async def test_page_limit_and_sort_changes(service):
    coordinator = QueryCoordinator(service, debounce=0.01)
    coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))
    coordinator.set_limit(50)
    coordinator.set_sort(SortField.CODE, SortOrder.ASC)
    coordinator.set_page(2)
    await coordinator.settled()

    spec = service.calls[-1]
    assert (spec.page, spec.limit, spec.sort_by, spec.sort_order) == (2, 50, SortField.CODE, SortOrder.ASC)
    assert spec.filters.vehicle_id == "VH-1001"


@pytest.mark.asyncio
async def test_reset_filters(service):
    coordinator = QueryCoordinator(service, debounce=0.01)
    coordinator.set_filters(EventFilters(vehicle_id="VH-1001", level=Level.ERROR))
    await coordinator.settled()

    coordinator.reset_filters()
    state = await coordinator.settled()

    assert state.filters == EventFilters()
    assert service.calls[-1].filters == EventFilters()


@pytest.mark.asyncio
async def test_failure_keeps_previous_results_and_next_trigger_recovers(service):
    service.failures["VH-BAD"] = StoreQueryError("connection lost")
    coordinator = QueryCoordinator(service, debounce=0.01)

    coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))
    good = await coordinator.settled()

    coordinator.set_filters(EventFilters(vehicle_id="VH-BAD"))
    failed = await coordinator.settled()

    assert failed.status is Status.FAILED
    assert failed.error == "connection lost"
    assert failed.events == good.events
    assert failed.result_seq == good.result_seq

    coordinator.set_filters(EventFilters(vehicle_id="VH-1002"))
    recovered = await coordinator.settled()

    assert recovered.status is Status.READY
    assert recovered.error is None
    assert [e.vehicle_id for e in recovered.events] == ["VH-1002"]


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(service):
    service.failures["VH-BAD"] = KeyError("boom")
    coordinator = QueryCoordinator(service, debounce=0.01)

    coordinator.set_filters(EventFilters(vehicle_id="VH-BAD"))
    state = await coordinator.settled()

    assert state.status is Status.FAILED
    assert "boom" in state.error


@pytest.mark.asyncio
async def test_timeout_fails_then_recovers(service):
    gate = service.hold("VH-SLOW")
    coordinator = QueryCoordinator(service, debounce=0.01, timeout=0.05)

    coordinator.set_filters(EventFilters(vehicle_id="VH-SLOW"))
    state = await coordinator.settled()

    assert state.status is Status.FAILED
    assert "timed out" in state.error
    gate.set()

    coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))
    state = await coordinator.settled()
    assert state.status is Status.READY


@pytest.mark.asyncio
async def test_ready_snapshots_are_consistent(query_service):
    """Every published result belongs to the filters recorded in the same snapshot."""
    coordinator = QueryCoordinator(query_service, debounce=0.005)
    ready = []
    coordinator.subscribe(lambda s: ready.append(s) if s.status is Status.READY else None)

    for vehicle_id in ("VH-1001", "VH-1002", "VH-1003", "VH-1001", "VH-1002"):
        coordinator.set_filters(EventFilters(vehicle_id=vehicle_id))
        await asyncio.sleep(0.01)
    await coordinator.settled()

    assert ready
    for snapshot in ready:
        assert snapshot.seq == snapshot.result_seq
        assert snapshot.events
        assert all(e.vehicle_id == snapshot.filters.vehicle_id for e in snapshot.events)
        assert snapshot.total >= len(snapshot.events)
    assert ready[-1].filters.vehicle_id == "VH-1002"


@pytest.mark.asyncio
async def test_invalid_page_reported_as_failure(query_service):
    coordinator = QueryCoordinator(query_service, debounce=0.01)

    coordinator.set_page(0)
    state = await coordinator.settled()
    assert state.status is Status.FAILED
    assert state.error == "Validation error"

    coordinator.set_page(1)
    state = await coordinator.settled()
    assert state.status is Status.READY
    assert state.total == 10


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_publishing(service):
    coordinator = QueryCoordinator(service, debounce=0.01)
    seen = []

    def broken(state):
        raise RuntimeError("listener bug")

    coordinator.subscribe(broken)
    unsubscribe = coordinator.subscribe(seen.append)
    coordinator.refresh()
    state = await coordinator.settled()

    assert state.status is Status.READY
    assert [s.status for s in seen] == [Status.DEBOUNCING, Status.FETCHING, Status.READY]

    unsubscribe()
    coordinator.refresh()
    await coordinator.settled()
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_closed_coordinator_rejects_triggers(service):
    gate = service.hold("VH-1001")
    coordinator = QueryCoordinator(service, debounce=0.01)
    coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))

    await coordinator.aclose()
    gate.set()

    assert not coordinator.pending
    with pytest.raises(RuntimeError):
        coordinator.refresh()


@pytest.mark.asyncio
async def test_timing_from_settings(service):
    coordinator = QueryCoordinator.from_settings(
        service, Settings(debounce_ms=20, fetch_timeout_s=2.5)
    )
    assert coordinator.debounce == 0.02
    assert coordinator.timeout == 2.5

    coordinator.set_filters(EventFilters(vehicle_id="VH-1001"))
    assert coordinator.state.status is Status.DEBOUNCING
    state = await coordinator.settled()
    assert state.status is Status.READY
