"""Pydantic models for API request/response schemas."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Level(str, Enum):
    """Event severity."""

    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"


class SortField(str, Enum):
    """Sortable event fields (public names)."""

    TIMESTAMP = "timestamp"
    VEHICLE_ID = "vehicleId"
    LEVEL = "level"
    CODE = "code"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class HealthStatus(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    HEALTHY = "HEALTHY"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Records and responses
# ---------------------------------------------------------------------------


class ApiModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class DiagnosticEvent(ApiModel):
    """One stored diagnostic record."""

    id: int
    timestamp: datetime
    vehicle_id: str
    level: Level
    code: str
    message: str


class EventPage(ApiModel):
    """One page of query results plus the filter-relative total."""

    data: List[DiagnosticEvent]
    total: int
    page: int
    limit: int


class ErrorsPerVehicle(ApiModel):
    """Per-vehicle severity counts."""

    vehicle_id: str
    error_count: int
    warn_count: int
    info_count: int
    total: int


class TopCode(ApiModel):
    """Occurrences of one (code, level) pair."""

    code: str
    count: int
    level: Level


class CriticalVehicle(ApiModel):
    """Vehicle meeting the critical-window rule."""

    vehicle_id: str
    error_count: int
    latest_error: datetime


class VehicleSummary(ApiModel):
    """Detail view for a single vehicle."""

    vehicle_id: str
    error_count: int
    warn_count: int
    info_count: int
    total: int
    first_seen: datetime
    last_seen: datetime
    top_codes: List[TopCode]
    recent_events: List[DiagnosticEvent]


class VehicleCard(ApiModel):
    """Fleet grid entry with derived health."""

    vehicle_id: str
    error_count: int
    warn_count: int
    info_count: int
    total: int
    health_status: HealthStatus


class HealthResponse(ApiModel):
    """Health check response."""

    status: str
    version: str
    mode: str
    events: int


class ErrorResponse(ApiModel):
    """Error body returned by every failing endpoint."""

    error: str
    status_code: Optional[int] = None
    details: Optional[List[Dict[str, Any]]] = None


# ---------------------------------------------------------------------------
# Request values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeRange:
    """Inclusive time bounds; either side may be open."""

    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_time", as_utc(self.from_time))
        object.__setattr__(self, "to_time", as_utc(self.to_time))


@dataclass(frozen=True)
class EventFilters:
    """Exact-match and range filters, combined with logical AND."""

    vehicle_id: Optional[str] = None
    code: Optional[str] = None
    level: Optional[Level] = None
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.level is not None:
            object.__setattr__(self, "level", Level(self.level))
        object.__setattr__(self, "from_time", as_utc(self.from_time))
        object.__setattr__(self, "to_time", as_utc(self.to_time))

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.from_time, self.to_time)


@dataclass(frozen=True)
class QuerySpec:
    """A filter + sort + page request against the event collection."""

    filters: EventFilters = field(default_factory=EventFilters)
    sort_by: SortField = SortField.TIMESTAMP
    sort_order: SortOrder = SortOrder.DESC
    page: int = 1
    limit: int = 20
