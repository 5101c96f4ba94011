"""Event log trail of a run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path

EVENT_LOGGER_NAME = "robocopy_runner.eventlog"

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Entry types mirrored from the Windows event log."""

    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"


_LEVELS = {
    EventType.INFORMATION: logging.INFO,
    EventType.WARNING: logging.WARNING,
    EventType.ERROR: logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class EventLogEntry:
    entry_type: EventType
    message: str
    written_at: datetime


class EventLog:
    """Collects event entries and forwards them to the event logger.

    Safe to write from worker threads.
    """

    def __init__(self, source: str, *, logger: logging.Logger | None = None) -> None:
        self.source = source
        self._logger = logger or logging.getLogger(EVENT_LOGGER_NAME)
        self._lock = threading.Lock()
        self._entries: list[EventLogEntry] = []

    def write(self, entry_type: EventType, message: str) -> EventLogEntry:
        entry = EventLogEntry(
            entry_type=entry_type,
            message=message,
            written_at=datetime.now(tz=UTC),
        )
        with self._lock:
            self._entries.append(entry)
        self._logger.log(_LEVELS[entry_type], "[%s] %s", self.source, message)
        return entry

    @property
    def entries(self) -> list[EventLogEntry]:
        with self._lock:
            return list(self._entries)


def attach_event_log_file(
    path: Path,
    *,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> logging.Handler | None:
    """Persist event entries to a rotating file; returns None when it cannot be opened."""

    event_logger = logging.getLogger(EVENT_LOGGER_NAME)
    event_logger.setLevel(logging.INFO)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as error:
        logger.warning("Event log file %s is not available: %s", path, error)
        return None
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    event_logger.addHandler(handler)
    return handler


def detach_event_log_file(handler: logging.Handler | None) -> None:
    if handler is None:
        return
    logging.getLogger(EVENT_LOGGER_NAME).removeHandler(handler)
    handler.close()
