"""Per-run context shared between dispatch and aggregation stages."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from robocopy_runner.runner.event_log import EventLog, EventType
from robocopy_runner.runner.models import SystemErrorEntry

logger = logging.getLogger(__name__)


class RunContext:
    """Mutable accumulators of one run, guarded for concurrent writers."""

    def __init__(self, *, script_name: str, event_log: EventLog | None = None) -> None:
        self.script_name = script_name
        self.event_log = event_log or EventLog(script_name)
        self._lock = threading.Lock()
        self._system_errors: list[SystemErrorEntry] = []

    def add_system_error(self, source: str, message: str) -> SystemErrorEntry:
        entry = SystemErrorEntry(
            source=source,
            message=message,
            occurred_at=datetime.now(tz=UTC),
        )
        with self._lock:
            self._system_errors.append(entry)
        logger.error("%s: %s", source, message)
        self.event_log.write(EventType.ERROR, f"{source}: {message}")
        return entry

    @property
    def system_errors(self) -> list[SystemErrorEntry]:
        with self._lock:
            return list(self._system_errors)
