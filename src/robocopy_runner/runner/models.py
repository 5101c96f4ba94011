"""Domain models for manifest tasks, execution results, and run counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class Outcome(str, Enum):
    """Classified task outcome derived from the tool exit code."""

    NO_CHANGE = "NoChange"
    COPY_OK = "CopyOk"
    MISMATCH = "Mismatch"
    FAIL = "Fail"
    FATAL_ERROR = "FatalError"
    UNKNOWN = "Unknown"
    DISPATCH_ERROR = "DispatchError"


class NotificationPolicy(str, Enum):
    """When the manifest recipients receive the report e-mail."""

    NEVER = "Never"
    ALWAYS = "Always"
    ONLY_ON_ERROR = "OnlyOnError"
    ONLY_ON_ERROR_OR_ACTION = "OnlyOnErrorOrAction"


class MailPriority(str, Enum):
    """E-mail priority flag."""

    NORMAL = "Normal"
    HIGH = "High"


@dataclass(frozen=True, slots=True)
class RobocopyArguments:
    """Explicit source/destination invocation of the copy tool."""

    source: str
    destination: str
    switches: str
    file: str = ""


@dataclass(frozen=True, slots=True)
class Task:
    """One requested copy operation, immutable after manifest parsing."""

    index: int
    name: str | None = None
    computer_name: str | None = None
    arguments: RobocopyArguments | None = None
    input_file: str | None = None

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.arguments is not None:
            return f"{self.arguments.source} > {self.arguments.destination}"
        return self.input_file or f"Task {self.index + 1}"


@dataclass(frozen=True, slots=True)
class MailPolicy:
    """Notification block of the manifest."""

    to: tuple[str, ...]
    when: NotificationPolicy
    subject: str | None = None
    header: str | None = None
    attach_log_files: bool = False


@dataclass(frozen=True, slots=True)
class Manifest:
    """Validated job manifest."""

    max_concurrent_jobs: int
    send_mail: MailPolicy
    tasks: tuple[Task, ...]


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Outcome of executing one task.

    ``exit_code`` and ``tool_output`` are only meaningful when the tool
    actually ran; ``task_error`` is set instead when dispatch itself failed.
    """

    task: Task
    tool_output: tuple[str, ...] = ()
    exit_code: int | None = None
    task_error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_dispatch_error(self) -> bool:
        return self.task_error is not None


@dataclass(frozen=True, slots=True)
class SystemErrorEntry:
    """Infrastructure problem raised outside task execution."""

    source: str
    message: str
    occurred_at: datetime


@dataclass(slots=True)
class RunCounters:
    """Aggregate counters computed once per run."""

    items_copied: int = 0
    tool_errors: int = 0
    dispatch_errors: int = 0
    system_errors: int = 0

    @property
    def total_errors(self) -> int:
        return self.tool_errors + self.dispatch_errors + self.system_errors


@dataclass(slots=True)
class MailMessage:
    """Fully assembled notification ready for a mailer."""

    to: tuple[str, ...]
    subject: str
    html_body: str
    priority: MailPriority = MailPriority.NORMAL
    cc: tuple[str, ...] = ()
    attachments: list[Path] = field(default_factory=list)
