"""Backend interface for copy tool invocation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from robocopy_runner.runner.models import Task


class BackendRunError(RuntimeError):
    """The copy tool could not be started or did not produce an exit code."""


class RemoteExecutionError(RuntimeError):
    """The remote transport failed before the tool reported an exit code."""

    def __init__(self, message: str, *, host: str) -> None:
        super().__init__(message)
        self.host = host


@dataclass(frozen=True, slots=True)
class CopyInvocation:
    """Argument set passed to the copy tool, locally or on a remote host."""

    source: str = ""
    destination: str = ""
    file: str = ""
    switches: str = ""
    input_file: str | None = None

    @classmethod
    def from_task(cls, task: Task) -> CopyInvocation:
        if task.input_file:
            return cls(input_file=task.input_file)
        if task.arguments is None:
            raise ValueError(f"Task {task.index + 1} has neither arguments nor input file.")
        return cls(
            source=task.arguments.source,
            destination=task.arguments.destination,
            file=task.arguments.file,
            switches=task.arguments.switches,
        )


@dataclass(frozen=True, slots=True)
class CopyRunResult:
    """Tool output and exit code of one invocation."""

    exit_code: int
    output_lines: tuple[str, ...]


class CopyBackend(Protocol):
    """Runs the copy tool on this machine."""

    def run(self, invocation: CopyInvocation) -> CopyRunResult:
        """Invoke the tool and return its output and exit code."""


class RemoteExecutor(Protocol):
    """Runs the copy tool on another machine."""

    def run_on_host(self, host: str, invocation: CopyInvocation) -> CopyRunResult:
        """Invoke the tool on ``host`` and return the same result shape as local runs."""
