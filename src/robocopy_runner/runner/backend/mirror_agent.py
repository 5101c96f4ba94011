"""Local mirroring tool for integration tests and dry runs without ROBOCOPY.

Honours the subset of the ROBOCOPY contract the runner relies on: argument
order, ``/JOB:`` files, the job summary layout and the exit-code bit field.

    python -m robocopy_runner.runner.backend.mirror_agent SRC DST [FILE ...] [/MIR] [/E]
"""

from __future__ import annotations

import fnmatch
import shutil
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from robocopy_runner.runner.exit_codes import FATAL_EXIT_CODE

_RULE = "-" * 78
_MTIME_TOLERANCE_SECONDS = 2.0


@dataclass(slots=True)
class MirrorJob:
    """Parsed command line or job file."""

    source: str = ""
    destination: str = ""
    patterns: list[str] = field(default_factory=list)
    switches: list[str] = field(default_factory=list)

    @property
    def recurse(self) -> bool:
        return self._has_switch("/S", "/E", "/MIR")

    @property
    def purge(self) -> bool:
        return self._has_switch("/PURGE", "/MIR")

    @property
    def list_only(self) -> bool:
        return self._has_switch("/L")

    def _has_switch(self, *names: str) -> bool:
        wanted = {name.upper() for name in names}
        return any(switch.split(":", 1)[0].upper() in wanted for switch in self.switches)


@dataclass(slots=True)
class _Counters:
    total: int = 0
    copied: int = 0
    skipped: int = 0
    mismatch: int = 0
    failed: int = 0
    extras: int = 0

    def values(self) -> tuple[int, ...]:
        return (self.total, self.copied, self.skipped, self.mismatch, self.failed, self.extras)


@dataclass(slots=True)
class _MirrorState:
    job: MirrorJob
    lines: list[str] = field(default_factory=list)
    dirs: _Counters = field(default_factory=_Counters)
    files: _Counters = field(default_factory=_Counters)
    bytes_total: int = 0
    bytes_copied: int = 0


def parse_arguments(argv: list[str]) -> MirrorJob:
    """Split ``argv`` into paths, file patterns and switches."""

    job = MirrorJob()
    remaining = list(argv)
    if remaining and remaining[0].upper().startswith("/JOB:"):
        job = read_job_file(Path(remaining.pop(0)[5:]))
    else:
        if len(remaining) >= 2:  # noqa: PLR2004
            job.source, job.destination = remaining[0], remaining[1]
            remaining = remaining[2:]

    for token in remaining:
        if token.startswith("/"):
            job.switches.append(token)
        else:
            job.patterns.append(token)
    return job


def read_job_file(path: Path) -> MirrorJob:
    """Read a ROBOCOPY ``.RCJ`` job file (``/SD:``, ``/DD:``, ``/IF`` and switches)."""

    job = MirrorJob()
    in_include_files = False
    for raw_line in path.read_text("utf-8-sig").splitlines():
        line = raw_line.split("::", 1)[0].strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith("/SD:"):
            job.source = line[4:].strip()
            in_include_files = False
        elif upper.startswith("/DD:"):
            job.destination = line[4:].strip()
            in_include_files = False
        elif upper == "/IF":
            in_include_files = True
        elif line.startswith("/"):
            job.switches.append(line)
            in_include_files = False
        elif in_include_files:
            job.patterns.append(line)
    return job


def run_mirror(job: MirrorJob) -> tuple[int, list[str]]:
    """Mirror ``job.source`` into ``job.destination``; return exit code and log lines."""

    started = time.monotonic()
    state = _MirrorState(job=job)
    _write_header(state)

    source = Path(job.source)
    if not job.source or not job.destination or not source.is_dir():
        state.lines.append(
            f"ERROR 2 (0x00000002) Accessing Source Directory {job.source}",
        )
        state.lines.append("The system cannot find the file specified.")
        return FATAL_EXIT_CODE, state.lines

    _mirror_directory(state, source, Path(job.destination))
    _write_summary(state, elapsed_seconds=time.monotonic() - started)

    exit_code = 0
    if state.files.copied:
        exit_code |= 0x1
    if state.files.extras or state.dirs.extras:
        exit_code |= 0x2
    if state.files.mismatch or state.dirs.mismatch:
        exit_code |= 0x4
    if state.files.failed or state.dirs.failed:
        exit_code |= 0x8
    return exit_code, state.lines


def _mirror_directory(state: _MirrorState, source: Path, destination: Path) -> None:
    job = state.job
    state.dirs.total += 1
    if destination.is_dir():
        state.dirs.skipped += 1
    elif destination.exists():
        state.dirs.mismatch += 1
        state.lines.append(f"\t*MISMATCH\t\t\t{destination}")
        return
    else:
        if not job.list_only:
            destination.mkdir(parents=True, exist_ok=True)
        state.dirs.copied += 1
        state.lines.append(f"\t  New Dir\t\t\t{destination}")

    children = sorted(source.iterdir())
    for child in children:
        if child.is_dir():
            if job.recurse:
                _mirror_directory(state, child, destination / child.name)
            continue
        if not _matches(child.name, job.patterns):
            continue
        _mirror_file(state, child, destination / child.name)

    if destination.is_dir():
        _handle_extras(state, source, destination)


def _mirror_file(state: _MirrorState, source: Path, target: Path) -> None:
    size = source.stat().st_size
    state.files.total += 1
    state.bytes_total += size
    if target.is_file() and _same_file(source, target):
        state.files.skipped += 1
        return

    label = "Newer" if target.exists() else "New File"
    if state.job.list_only:
        state.files.copied += 1
        state.bytes_copied += size
        state.lines.append(f"\t    {label}\t\t{size}\t{source.name}")
        return
    try:
        shutil.copy2(source, target)
    except OSError as error:
        state.files.failed += 1
        state.lines.append(f"ERROR copying {source} -> {target}: {error}")
        return
    state.files.copied += 1
    state.bytes_copied += size
    state.lines.append(f"\t    {label}\t\t{size}\t{source.name}")


def _handle_extras(state: _MirrorState, source: Path, destination: Path) -> None:
    job = state.job
    for entry in sorted(destination.iterdir()):
        if (source / entry.name).exists():
            continue
        if entry.is_dir():
            if not job.recurse:
                continue
            state.dirs.extras += 1
            state.lines.append(f"\t*EXTRA Dir\t\t\t{entry}")
            if job.purge and not job.list_only:
                shutil.rmtree(entry, ignore_errors=True)
        elif _matches(entry.name, job.patterns):
            state.files.extras += 1
            state.lines.append(f"\t\t*EXTRA File\t\t{entry.name}")
            if job.purge and not job.list_only:
                entry.unlink(missing_ok=True)


def _matches(name: str, patterns: list[str]) -> bool:
    if not patterns:
        return True
    return any(fnmatch.fnmatch(name.lower(), pattern.lower()) for pattern in patterns)


def _same_file(source: Path, target: Path) -> bool:
    source_stat = source.stat()
    target_stat = target.stat()
    return (
        source_stat.st_size == target_stat.st_size
        and abs(source_stat.st_mtime - target_stat.st_mtime) < _MTIME_TOLERANCE_SECONDS
    )


def _write_header(state: _MirrorState) -> None:
    job = state.job
    state.lines.extend(
        [
            _RULE,
            "   ROBOCOPY     ::     Robust File Copy for Windows",
            _RULE,
            "",
            f"  Started : {_timestamp()}",
            f"   Source : {job.source}",
            f"     Dest : {job.destination}",
            "",
            f"    Files : {' '.join(job.patterns) or '*.*'}",
            "",
            f"  Options : {' '.join(job.switches)}",
            "",
            _RULE,
            "",
        ],
    )


def _write_summary(state: _MirrorState, *, elapsed_seconds: float) -> None:
    elapsed = _duration(elapsed_seconds)
    zero = _duration(0)
    state.lines.extend(
        [
            "",
            _RULE,
            "",
            "               Total    Copied   Skipped  Mismatch    FAILED    Extras",
            _summary_row("Dirs", state.dirs.values()),
            _summary_row("Files", state.files.values()),
            _summary_row(
                "Bytes",
                (
                    state.bytes_total,
                    state.bytes_copied,
                    state.bytes_total - state.bytes_copied,
                    0,
                    0,
                    0,
                ),
            ),
            f"{'Times':>10} :{elapsed:>10}{elapsed:>10}{'':>20}{zero:>10}{zero:>10}",
            f"{'Ended':>10} : {_timestamp()}",
        ],
    )


def _summary_row(label: str, values: tuple[int, ...]) -> str:
    return f"{label:>10} :" + "".join(f"{value:>10}" for value in values)


def _duration(seconds: float) -> str:
    whole = int(seconds)
    return f"{whole // 3600}:{whole // 60 % 60:02d}:{whole % 60:02d}"


def _timestamp() -> str:
    return datetime.now().strftime("%A, %B %d, %Y %I:%M:%S %p")  # noqa: DTZ005


def main(argv: list[str] | None = None) -> int:
    """Run one mirror job and print a ROBOCOPY style log."""

    try:
        job = parse_arguments(sys.argv[1:] if argv is None else argv)
    except OSError as error:
        print(f"ERROR : Invalid job file: {error}")  # noqa: T201
        return FATAL_EXIT_CODE
    exit_code, lines = run_mirror(job)
    for line in lines:
        print(line)  # noqa: T201
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
