"""Runtime configuration for the job runner."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_MAX_PORT = 65_535


@dataclass(slots=True)
class ToolSettings:
    """Local copy tool invocation settings."""

    command: str = "robocopy"
    encoding: str | None = None
    task_timeout_seconds: int = 0


@dataclass(slots=True)
class RemoteSettings:
    """Remote execution transport settings."""

    command_template: str = "ssh -o BatchMode=yes {host}"
    tool_command: str = "robocopy"


@dataclass(slots=True)
class SmtpSettings:
    """Mail relay and administrator settings."""

    host: str = ""
    port: int = 25
    sender: str = "robocopy-runner@localhost"
    starttls: bool = False
    username: str = ""
    password: str = ""
    admin_address: str = ""


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    log_folder: Path = Path("logs")
    outbox_folder: Path | None = None
    script_name: str = "Robocopy"
    tool: ToolSettings = field(default_factory=ToolSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    smtp: SmtpSettings = field(default_factory=SmtpSettings)

    @property
    def task_timeout(self) -> int | None:
        return self.tool.task_timeout_seconds or None

    @classmethod
    def from_env(cls, log_folder: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local use."""

        return cls(
            log_folder=log_folder or Path(os.getenv("ROBOCOPY_RUNNER_LOG_FOLDER", "logs")),
            outbox_folder=_env_path("ROBOCOPY_RUNNER_OUTBOX_FOLDER"),
            script_name=os.getenv("ROBOCOPY_RUNNER_SCRIPT_NAME", "Robocopy").strip()
            or "Robocopy",
            tool=ToolSettings(
                command=os.getenv("ROBOCOPY_RUNNER_TOOL_COMMAND", "robocopy"),
                encoding=os.getenv("ROBOCOPY_RUNNER_TOOL_ENCODING") or None,
                task_timeout_seconds=_env_int("ROBOCOPY_RUNNER_TASK_TIMEOUT_SECONDS", 0),
            ),
            remote=RemoteSettings(
                command_template=os.getenv(
                    "ROBOCOPY_RUNNER_REMOTE_COMMAND",
                    "ssh -o BatchMode=yes {host}",
                ),
                tool_command=os.getenv("ROBOCOPY_RUNNER_REMOTE_TOOL_COMMAND", "robocopy"),
            ),
            smtp=SmtpSettings(
                host=os.getenv("ROBOCOPY_RUNNER_SMTP_HOST", "").strip(),
                port=_env_int("ROBOCOPY_RUNNER_SMTP_PORT", 25),
                sender=os.getenv("ROBOCOPY_RUNNER_SMTP_SENDER", "robocopy-runner@localhost"),
                starttls=_env_bool("ROBOCOPY_RUNNER_SMTP_STARTTLS", default=False),
                username=os.getenv("ROBOCOPY_RUNNER_SMTP_USERNAME", ""),
                password=os.getenv("ROBOCOPY_RUNNER_SMTP_PASSWORD", ""),
                admin_address=os.getenv("ROBOCOPY_RUNNER_ADMIN_ADDRESS", "").strip(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the runner cannot work with."""

        if not self.tool.command.strip():
            raise ValueError("ROBOCOPY_RUNNER_TOOL_COMMAND must not be empty.")
        if self.tool.task_timeout_seconds < 0:
            raise ValueError("ROBOCOPY_RUNNER_TASK_TIMEOUT_SECONDS must be >= 0.")
        if "{host}" not in self.remote.command_template:
            raise ValueError("ROBOCOPY_RUNNER_REMOTE_COMMAND must include {host}.")
        if not self.remote.tool_command.strip():
            raise ValueError("ROBOCOPY_RUNNER_REMOTE_TOOL_COMMAND must not be empty.")
        if not 0 < self.smtp.port <= _MAX_PORT:
            raise ValueError(
                f"ROBOCOPY_RUNNER_SMTP_PORT must be between 1 and {_MAX_PORT}, "
                f"got {self.smtp.port}.",
            )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    return Path(value) if value else None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
