"""Coordinator owning the current event filters, page and results."""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..config import Settings
from ..models import DiagnosticEvent, EventFilters, EventPage, QuerySpec, SortField, SortOrder
from ..services.query_service import QueryService
from .base import Coordinator, Status


@dataclass(frozen=True)
class QueryState:
    """Snapshot of the event list.

    ``events``/``total`` always come from the single trigger recorded in
    ``result_seq``; ``seq`` is the latest trigger.
    """

    status: Status = Status.IDLE
    seq: int = 0
    filters: EventFilters = field(default_factory=EventFilters)
    page: int = 1
    limit: int = 20
    sort_by: SortField = SortField.TIMESTAMP
    sort_order: SortOrder = SortOrder.DESC
    events: Tuple[DiagnosticEvent, ...] = ()
    total: int = 0
    result_seq: int = 0
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status is Status.FETCHING


class QueryCoordinator(Coordinator[QueryState, EventPage]):
    """Drives QueryService from filter/page/limit/sort changes."""

    name = "query-coordinator"

    def __init__(
        self,
        service: QueryService,
        debounce: float = 0.3,
        timeout: Optional[float] = 5.0,
        initial: Optional[QueryState] = None,
    ):
        super().__init__(initial or QueryState(), debounce=debounce, timeout=timeout)
        self.service = service

    @classmethod
    def from_settings(cls, service: QueryService, settings: Settings) -> "QueryCoordinator":
        return cls(service, debounce=settings.debounce_s, timeout=settings.fetch_timeout_s)

    def _request(self, state: QueryState) -> QuerySpec:
        return QuerySpec(
            filters=state.filters,
            sort_by=state.sort_by,
            sort_order=state.sort_order,
            page=state.page,
            limit=state.limit,
        )

    async def _fetch(self, request: QuerySpec) -> EventPage:
        return await asyncio.to_thread(self.service.query, request)

    def _applied(self, result: EventPage) -> dict:
        return {"events": tuple(result.data), "total": result.total}

    def set_filters(self, filters: EventFilters) -> int:
        """Replace the filters; the page resets to 1."""
        return self._trigger(filters=filters, page=1)

    def reset_filters(self) -> int:
        return self._trigger(filters=EventFilters(), page=1)

    def set_page(self, page: int) -> int:
        return self._trigger(page=page)

    def set_limit(self, limit: int) -> int:
        return self._trigger(limit=limit)

    def set_sort(self, sort_by: SortField, sort_order: SortOrder = SortOrder.DESC) -> int:
        return self._trigger(sort_by=sort_by, sort_order=sort_order)

    def refresh(self) -> int:
        """Re-run the current request (e.g. retry after a failure)."""
        return self._trigger()
