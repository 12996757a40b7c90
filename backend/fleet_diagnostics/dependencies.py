"""FastAPI dependencies resolving the services attached at startup."""

from fastapi import Request

from .services.aggregation_service import AggregationService
from .services.query_service import QueryService
from .store.query import EventStore


def get_store(request: Request) -> EventStore:
    return request.app.state.store


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service


def get_aggregation_service(request: Request) -> AggregationService:
    return request.app.state.aggregation_service
