"""Best-effort extraction of the ROBOCOPY job summary from its log output."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

LOG_PARSER_VERSION = "v1"

NOT_AVAILABLE = "NA"

_SOURCE = re.compile(r"^\s*Source\s*:\s*(.*?)\s*$", re.IGNORECASE)
_DESTINATION = re.compile(r"^\s*Dest\s*:\s*(.*?)\s*$", re.IGNORECASE)
_STARTED = re.compile(r"^\s*Started\s*:\s*(.*?)\s*$", re.IGNORECASE)
_ENDED = re.compile(r"^\s*Ended\s*:\s*(.*?)\s*$", re.IGNORECASE)
_COUNTS = r"\s+".join([r"(\d+)"] * 6)
_DIRS = re.compile(rf"^\s*Dirs\s*:\s*{_COUNTS}\s*$", re.IGNORECASE)
_FILES = re.compile(rf"^\s*Files\s*:\s*{_COUNTS}\s*$", re.IGNORECASE)
_BYTES = re.compile(r"^\s*Bytes\s*:\s*(.+?)\s*$", re.IGNORECASE)
_BYTE_VALUE = re.compile(r"\d+(?:[.,]\d+)?(?:\s+[kmgt])?", re.IGNORECASE)
_TIMES = re.compile(
    r"^\s*Times\s*:\s*(\d+:\d{2}:\d{2})\s+(\d+:\d{2}:\d{2})\s+"
    r"(\d+:\d{2}:\d{2})\s+(\d+:\d{2}:\d{2})\s*$",
    re.IGNORECASE,
)


@dataclass(slots=True)
class RobocopyRowCounts:
    """One numeric row of the job summary (Dirs or Files)."""

    total: int = 0
    copied: int = 0
    skipped: int = 0
    mismatch: int = 0
    failed: int = 0
    extras: int = 0


@dataclass(slots=True)
class RobocopyTimes:
    """Times row of the job summary; values are kept as reported."""

    total: str = ""
    copied: str = ""
    failed: str = ""
    extras: str = ""


@dataclass(slots=True)
class RobocopyLogSummary:
    """Structured view of a ROBOCOPY log."""

    source: str = ""
    destination: str = ""
    started: str = ""
    ended: str = ""
    dirs: RobocopyRowCounts = field(default_factory=RobocopyRowCounts)
    files: RobocopyRowCounts = field(default_factory=RobocopyRowCounts)
    byte_counts: tuple[str, ...] = ()
    times: RobocopyTimes = field(default_factory=RobocopyTimes)
    has_summary: bool = False
    parser_version: str = LOG_PARSER_VERSION

    @property
    def items_copied(self) -> int:
        return self.dirs.copied + self.files.copied

    @property
    def execution_time(self) -> str:
        return self.times.total or NOT_AVAILABLE


def parse_robocopy_log(lines: Iterable[str]) -> RobocopyLogSummary:
    """Extract paths, counters and durations from tool output lines.

    Missing or malformed sections keep their defaults. When the log holds
    several job summaries the last one wins.
    """

    summary = RobocopyLogSummary()
    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            continue

        if (match := _DIRS.match(line)) is not None:
            summary.dirs = _row_counts(match)
            summary.has_summary = True
        elif (match := _FILES.match(line)) is not None:
            summary.files = _row_counts(match)
            summary.has_summary = True
        elif (match := _TIMES.match(line)) is not None:
            summary.times = RobocopyTimes(*match.groups())
            summary.has_summary = True
        elif (match := _BYTES.match(line)) is not None:
            summary.byte_counts = tuple(
                value.group(0) for value in _BYTE_VALUE.finditer(match.group(1))
            )
        elif (match := _SOURCE.match(line)) is not None:
            summary.source = match.group(1)
        elif (match := _DESTINATION.match(line)) is not None:
            summary.destination = match.group(1)
        elif (match := _STARTED.match(line)) is not None:
            summary.started = match.group(1)
        elif (match := _ENDED.match(line)) is not None:
            summary.ended = match.group(1)

    return summary


def _row_counts(match: re.Match[str]) -> RobocopyRowCounts:
    return RobocopyRowCounts(*(int(value) for value in match.groups()))
