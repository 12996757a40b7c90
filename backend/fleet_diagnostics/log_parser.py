"""Line-format decoder for diagnostic event logs."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .models import Level, as_utc

logger = logging.getLogger(__name__)

LOG_LINE_PATTERN = re.compile(
    r"^\[(.+?)\] \[VEHICLE_ID:([A-Z][A-Z0-9]+-\d{4})\] \[(ERROR|WARN|INFO)\] "
    r"\[CODE:([A-Z]\d{4})\] (.+)$"
)

# Malformed lines logged individually before going quiet
_MAX_LOGGED_ERRORS = 10


@dataclass(frozen=True)
class ParsedLogEntry:
    """A decoded line, not yet assigned an id by the store."""

    timestamp: datetime
    vehicle_id: str
    level: Level
    code: str
    message: str


def _parse_timestamp(value: str) -> Optional[datetime]:
    # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def parse_log_line(line: str) -> Optional[ParsedLogEntry]:
    """
    Parse a single structured log line.

    Args:
        line: Raw line, e.g.
            ``[2024-01-15T08:00:00Z] [VEHICLE_ID:VH-1001] [ERROR] [CODE:P0300] Misfire``

    Returns:
        Parsed entry, or None for blank lines, comments and malformed lines
    """
    trimmed = line.strip()
    if not trimmed or trimmed.startswith("#"):
        return None

    match = LOG_LINE_PATTERN.match(trimmed)
    if match is None:
        return None

    timestamp_str, vehicle_id, level, code, message = match.groups()
    timestamp = _parse_timestamp(timestamp_str)
    if timestamp is None:
        return None

    return ParsedLogEntry(
        timestamp=timestamp,
        vehicle_id=vehicle_id,
        level=Level(level),
        code=code,
        message=message,
    )


def parse_log_file(content: str) -> List[ParsedLogEntry]:
    """
    Parse the full contents of a log file.

    Blank and comment lines are skipped silently; other lines that fail to
    parse are skipped with a warning.

    Args:
        content: File contents

    Returns:
        Parsed entries in file order
    """
    entries: List[ParsedLogEntry] = []
    malformed = 0

    for line_no, line in enumerate(content.splitlines(), start=1):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue

        entry = parse_log_line(trimmed)
        if entry is None:
            malformed += 1
            if malformed <= _MAX_LOGGED_ERRORS:
                logger.warning(f"Skipping malformed line {line_no}: {trimmed[:80]}")
            continue

        entries.append(entry)

    logger.info(f"Parsed {len(entries)} entries ({malformed} malformed lines skipped)")
    return entries
