"""Lambda handler for FastAPI application using Mangum."""

from mangum import Mangum

from fleet_diagnostics.app import create_app, setup_logging
from fleet_diagnostics.config import settings
from fleet_diagnostics.store.bootstrap import build_event_store

setup_logging(settings)

# Store handle is built once per container and owned by this entry point
handler = Mangum(create_app(store=build_event_store(settings)), lifespan="off")
