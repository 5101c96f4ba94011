"""Log folder layout and persisted run artifacts."""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from robocopy_runner.runner.models import SystemErrorEntry, Task, TaskResult

REPORT_FILE_NAME = "Report.html"
SYSTEM_ERRORS_FILE_NAME = "System errors.json"

_MAX_RUN_DIR_ATTEMPTS = 100
_UNSAFE_FILE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


class ArtifactError(RuntimeError):
    """Run log folder could not be prepared."""


def write_json(path: Path, payload: Any) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True, default=str),
        "utf-8",
    )


class RunArtifacts:
    """Creates the per-run log folder and the files written into it."""

    def __init__(self, root_dir: Path, *, script_name: str, started_at: datetime) -> None:
        self.root_dir = root_dir
        self.run_dir = (
            root_dir / safe_file_name(script_name) / started_at.strftime("%Y-%m-%d %H%M%S")
        )

    def prepare(self) -> Path:
        """Create a fresh run folder; runs started in the same second get a numbered suffix."""

        base = self.run_dir
        for attempt in range(1, _MAX_RUN_DIR_ATTEMPTS + 1):
            candidate = base if attempt == 1 else base.with_name(f"{base.name} ({attempt})")
            try:
                candidate.mkdir(parents=True)
            except FileExistsError:
                continue
            except OSError as error:
                raise ArtifactError(
                    f"Failed creating the log folder '{candidate}': {error}",
                ) from error
            self.run_dir = candidate
            return candidate
        raise ArtifactError(f"Failed creating the log folder '{base}': every name is taken")

    def task_log_path(self, task: Task) -> Path:
        return self.run_dir / f"{task.index + 1:03d} - {safe_file_name(task.label)}.log"

    def write_task_log(self, result: TaskResult) -> Path:
        path = self.task_log_path(result.task)
        if result.task_error is not None:
            lines = [f"Task could not be executed: {result.task_error}"]
        else:
            lines = list(result.tool_output)
        path.write_text("\n".join(lines) + "\n", "utf-8")
        return path

    def write_report(self, html: str) -> Path:
        path = self.run_dir / REPORT_FILE_NAME
        path.write_text(html, "utf-8")
        return path

    def write_system_errors(self, errors: Sequence[SystemErrorEntry]) -> Path:
        path = self.run_dir / SYSTEM_ERRORS_FILE_NAME
        write_json(path, {"system_errors": [asdict(entry) for entry in errors]})
        return path


def safe_file_name(value: str, *, limit: int = 80) -> str:
    cleaned = _UNSAFE_FILE_CHARS.sub("_", value).strip(" ._")
    return (cleaned or "task")[:limit]
