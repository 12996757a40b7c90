"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from fleet_diagnostics.app import create_app
from fleet_diagnostics.config import Settings
from fleet_diagnostics.errors import InternalStoreError, StoreQueryError


class FailingStore:
    """Store whose every read raises ``error``."""

    def __init__(self, error):
        self.error = error

    def _fail(self, *args, **kwargs):
        raise self.error

    count = find = group_count = time_bounds = _fail


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store, config=Settings(local_mode=True)))


def failing_client(error):
    return TestClient(create_app(store=FailingStore(error), config=Settings(local_mode=True)))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0", "mode": "local", "events": 10}


def test_list_events_defaults(client):
    response = client.get("/api/events")

    assert response.status_code == 200
    body = response.json()
    assert (body["total"], body["page"], body["limit"]) == (10, 1, 20)
    assert len(body["data"]) == 10
    assert set(body["data"][0]) == {"id", "timestamp", "vehicleId", "level", "code", "message"}
    assert body["data"][0]["timestamp"].startswith("2024-01-15T09:30:00")


def test_list_events_filters_and_pagination(client):
    response = client.get("/api/events", params={
        "vehicleId": "VH-1001",
        "level": "ERROR",
        "limit": 1,
        "page": 2,
        "sortOrder": "ASC",
    })

    body = response.json()
    assert body["total"] == 2
    assert [e["id"] for e in body["data"]] == [2]


def test_list_events_time_range(client):
    response = client.get("/api/events", params={
        "from": "2024-01-15T08:40:00Z",
        "to": "2024-01-15T09:00:00Z",
        "sortBy": "vehicleId",
    })

    body = response.json()
    assert body["total"] == 3
    assert {e["vehicleId"] for e in body["data"]} == {"VH-1002"}


@pytest.mark.parametrize("params", [
    {"limit": 0},
    {"limit": 101},
    {"page": 0},
    {"level": "FATAL"},
    {"sortBy": "message"},
    {"sortOrder": "UP"},
    {"from": "not-a-date"},
])
def test_list_events_validation_errors(client, params):
    response = client.get("/api/events", params=params)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation error"
    assert body["statusCode"] == 400
    assert body["details"]


def test_errors_per_vehicle(client):
    response = client.get("/api/aggregations/errors-per-vehicle")

    assert response.status_code == 200
    assert response.json()[0] == {
        "vehicleId": "VH-1001",
        "errorCount": 2,
        "warnCount": 1,
        "infoCount": 1,
        "total": 4,
    }


def test_top_codes_level_filter(client):
    response = client.get("/api/aggregations/top-codes", params={"level": "ERROR"})

    assert response.json() == [
        {"code": "P0300", "count": 2, "level": "ERROR"},
        {"code": "P0420", "count": 1, "level": "ERROR"},
    ]


def test_critical_vehicles(client):
    response = client.get("/api/aggregations/critical-vehicles")

    assert response.status_code == 200
    assert response.json() == []


def test_vehicle_cards(client):
    response = client.get("/api/vehicles")

    assert [(c["vehicleId"], c["healthStatus"]) for c in response.json()] == [
        ("VH-1001", "WARNING"),
        ("VH-1002", "HEALTHY"),
        ("VH-1003", "WARNING"),
    ]

    searched = client.get("/api/vehicles", params={"search": "1003"}).json()
    assert [c["vehicleId"] for c in searched] == ["VH-1003"]


def test_vehicle_summary(client):
    response = client.get("/api/vehicles/VH-1001/summary")

    assert response.status_code == 200
    body = response.json()
    assert body["vehicleId"] == "VH-1001"
    assert body["total"] == 4
    assert body["firstSeen"].startswith("2024-01-15T08:00:00")
    assert len(body["recentEvents"]) == 4
    assert body["topCodes"][0] == {"code": "P0300", "count": 2, "level": "ERROR"}


def test_vehicle_summary_not_found(client):
    response = client.get("/api/vehicles/VH-9999/summary")

    assert response.status_code == 404
    assert response.json() == {"error": "Vehicle VH-9999 not found", "statusCode": 404}


def test_store_failure_is_service_unavailable():
    response = failing_client(StoreQueryError("Query failed with state: FAILED")).get("/api/events")

    assert response.status_code == 503
    assert response.json()["error"] == "Query failed with state: FAILED"


def test_internal_store_error_is_500():
    response = failing_client(InternalStoreError("negative count")).get(
        "/api/aggregations/errors-per-vehicle"
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "statusCode": 500}
