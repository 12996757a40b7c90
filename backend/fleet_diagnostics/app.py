"""FastAPI application."""

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import Settings, settings
from .dependencies import get_store
from .errors import InternalStoreError, InvalidQueryError, TransientFetchError, VehicleNotFoundError
from .models import ErrorResponse, HealthResponse
from .routers import aggregations, events, vehicles
from .services.aggregation_service import AggregationService
from .services.query_service import QueryService
from .store.bootstrap import build_event_store
from .store.query import EventStore

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(config: Settings) -> None:
    """
    Configure root logger from settings.

    Args:
        config: Application settings
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    # Rotating file handler
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(config.log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        fh.setFormatter(formatter)
        root.addHandler(fh)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def attach_store(app: FastAPI, store: EventStore) -> None:
    """Bind the store handle and the services built on it to ``app``."""
    app.state.store = store
    app.state.query_service = QueryService(store)
    app.state.aggregation_service = AggregationService(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.store is None:
        config: Settings = app.state.settings
        setup_logging(config)
        store = await run_in_threadpool(build_event_store, config)
        attach_store(app, store)
        logger.info(f"Started in {'local' if config.local_mode else 'cloud'} mode")
    yield


def _error_body(
    message: str, status_code: int, details: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    return ErrorResponse(error=message, status_code=status_code, details=details).model_dump(
        by_alias=True, exclude_none=True
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=_error_body("Validation error", 400, details))

    @app.exception_handler(InvalidQueryError)
    async def invalid_query_handler(request: Request, exc: InvalidQueryError):
        return JSONResponse(status_code=400, content=_error_body(str(exc), 400, exc.details))

    @app.exception_handler(VehicleNotFoundError)
    async def not_found_handler(request: Request, exc: VehicleNotFoundError):
        return JSONResponse(status_code=404, content=_error_body(str(exc), 404))

    @app.exception_handler(TransientFetchError)
    async def transient_handler(request: Request, exc: TransientFetchError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=503, content=_error_body(str(exc), 503))

    @app.exception_handler(InternalStoreError)
    async def internal_handler(request: Request, exc: InternalStoreError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body("Internal server error", 500))

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=_error_body("Internal server error", 500))


def create_app(store: Optional[EventStore] = None, config: Settings = settings) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Event store handle; built from ``config`` at startup when None
        config: Application settings

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Fleet Diagnostics API",
        description="REST API for querying and aggregating vehicle diagnostic events",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.store = None
    if store is not None:
        attach_store(app, store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(events.router, prefix="/api", tags=["events"])
    app.include_router(aggregations.router, prefix="/api/aggregations", tags=["aggregations"])
    app.include_router(vehicles.router, prefix="/api/vehicles", tags=["vehicles"])

    _register_exception_handlers(app)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint redirect to docs."""
        return {"message": "Fleet Diagnostics API - visit /docs for API documentation"}

    @app.get("/health", response_model=HealthResponse)
    async def health(store: EventStore = Depends(get_store)):
        """Health check endpoint."""
        events_count = await run_in_threadpool(store.count)
        return HealthResponse(
            status="ok",
            version=VERSION,
            mode="local" if config.local_mode else "cloud",
            events=events_count,
        )

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn."""
    parser = argparse.ArgumentParser(description="Fleet diagnostics API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    args = parser.parse_args()

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
