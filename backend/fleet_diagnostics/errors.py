"""Exception hierarchy for the diagnostics engine."""

from typing import Any, Dict, List, Optional


class DiagnosticsError(Exception):
    """Base exception for all engine errors."""


class InvalidQueryError(DiagnosticsError):
    """Malformed or out-of-range request parameters.

    ``details`` holds one entry per violation, each with at least
    ``field`` and ``message`` keys. Never retried automatically.
    """

    def __init__(self, message: str, *, details: Optional[List[Dict[str, Any]]] = None) -> None:
        self.details = details or []
        super().__init__(message)


class VehicleNotFoundError(DiagnosticsError):
    """Summary requested for a vehicle with zero events."""

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} not found")


class TransientFetchError(DiagnosticsError):
    """Failure reaching the store or completing a query (timeout, connection loss)."""


class StoreQueryError(TransientFetchError):
    """Backend rejected or failed to finish a query."""

    def __init__(self, message: str, *, query_id: str = "") -> None:
        self.query_id = query_id
        super().__init__(message)


class InternalStoreError(DiagnosticsError):
    """Store returned data violating an engine invariant (e.g. a negative count)."""
