"""Filtered, sorted, paginated event queries."""

import logging
from typing import Any, Dict, List

from ..errors import InvalidQueryError
from ..models import EventPage, QuerySpec, SortField, SortOrder
from ..store.query import EventStore, SortKey, filter_predicates

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 100

SORT_COLUMNS = {
    SortField.TIMESTAMP: "timestamp",
    SortField.VEHICLE_ID: "vehicle_id",
    SortField.LEVEL: "level",
    SortField.CODE: "code",
}


def validate_spec(spec: QuerySpec) -> None:
    """Raise InvalidQueryError listing every out-of-range field of ``spec``."""
    details: List[Dict[str, Any]] = []

    if not isinstance(spec.page, int) or spec.page < 1:
        details.append({"field": "page", "message": "must be an integer >= 1"})
    if not isinstance(spec.limit, int) or not MIN_LIMIT <= spec.limit <= MAX_LIMIT:
        details.append({"field": "limit", "message": f"must be an integer in [{MIN_LIMIT}, {MAX_LIMIT}]"})
    if not isinstance(spec.sort_by, SortField):
        details.append({"field": "sortBy", "message": f"must be one of {[f.value for f in SortField]}"})
    if not isinstance(spec.sort_order, SortOrder):
        details.append({"field": "sortOrder", "message": "must be ASC or DESC"})

    if details:
        raise InvalidQueryError("Validation error", details=details)


def order_for(spec: QuerySpec) -> List[SortKey]:
    """Sort column, then ``id`` in the same direction so the order is total."""
    descending = spec.sort_order is SortOrder.DESC
    return [
        SortKey(SORT_COLUMNS[spec.sort_by], descending),
        SortKey("id", descending),
    ]


class QueryService:
    """Turns a QuerySpec into one page of events plus the total match count."""

    def __init__(self, store: EventStore):
        self.store = store

    def query(self, spec: QuerySpec) -> EventPage:
        """
        Run a query.

        Args:
            spec: Filters, sort and page window

        Returns:
            Page of events with the filter-relative total

        Raises:
            InvalidQueryError: If page, limit or sort fields are out of range
        """
        validate_spec(spec)

        predicates = filter_predicates(spec.filters)
        events, total = self.store.find(
            predicates,
            order_for(spec),
            offset=(spec.page - 1) * spec.limit,
            limit=spec.limit,
        )

        logger.debug(
            f"Query page={spec.page} limit={spec.limit} sort={spec.sort_by.value} "
            f"{spec.sort_order.value}: {len(events)}/{total} events"
        )
        return EventPage(data=events, total=total, page=spec.page, limit=spec.limit)
