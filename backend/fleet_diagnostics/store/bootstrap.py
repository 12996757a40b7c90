"""Store construction for process entry points."""

import logging
from pathlib import Path
from typing import Union

from ..athena_client import AthenaClient
from ..config import Settings
from ..log_parser import parse_log_file
from .athena_store import AthenaEventStore
from .parquet_store import ParquetEventStore
from .query import EventStore

logger = logging.getLogger(__name__)


def seed_store(store: ParquetEventStore, seed_log: Union[str, Path]) -> int:
    """
    Seed an empty store from a log file.

    A store that already holds events is left untouched.

    Args:
        store: Local store
        seed_log: Path to a diagnostic log file

    Returns:
        Number of events seeded
    """
    existing = store.count()
    if existing > 0:
        logger.info(f"Store already seeded ({existing} events)")
        return 0

    seed_path = Path(seed_log)
    if not seed_path.exists():
        logger.warning(f"Seed log not found: {seed_path}")
        return 0

    entries = parse_log_file(seed_path.read_text(encoding="utf-8"))
    seeded = store.append(entries)
    logger.info(f"Seeded {seeded} diagnostic events from {seed_path}")
    return seeded


def build_event_store(settings: Settings) -> EventStore:
    """
    Build the store handle selected by ``settings``.

    Args:
        settings: Application settings

    Returns:
        ParquetEventStore in local mode, AthenaEventStore otherwise
    """
    if settings.local_mode:
        store = ParquetEventStore.open(settings.events_path)
        seed_store(store, settings.seed_log)
        return store

    logger.info(
        f"Using Athena store: database={settings.athena_database}, "
        f"table={settings.athena_table}"
    )
    return AthenaEventStore(AthenaClient.from_settings(settings), table=settings.athena_table)
