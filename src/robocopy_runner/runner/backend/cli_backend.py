"""Subprocess-based backend running the copy tool on this machine."""

from __future__ import annotations

import os
import shlex
import subprocess

from robocopy_runner.runner.backend.base import BackendRunError, CopyInvocation, CopyRunResult


class RobocopyBackend:
    """Execute the configured copy tool command for one invocation."""

    def __init__(
        self,
        *,
        tool_command: str = "robocopy",
        timeout_seconds: int | None = None,
        encoding: str | None = None,
    ) -> None:
        self.tool_command = tool_command
        self.timeout_seconds = timeout_seconds
        self.encoding = encoding

    def run(self, invocation: CopyInvocation) -> CopyRunResult:
        run_args, command_head = build_run_args(
            invocation=invocation,
            tool_command=self.tool_command,
        )
        try:
            completed = subprocess.run(  # noqa: S603
                run_args,
                check=False,
                capture_output=True,
                text=True,
                encoding=self.encoding,
                errors="replace",
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as error:
            raise BackendRunError(f"Copy tool command not found: {command_head}") from error
        except subprocess.TimeoutExpired as error:
            raise BackendRunError(
                f"Copy tool did not finish within {self.timeout_seconds} seconds.",
            ) from error
        except OSError as error:
            raise BackendRunError(f"Copy tool failed to start: {error}") from error

        return CopyRunResult(
            exit_code=completed.returncode,
            output_lines=output_lines(completed.stdout, completed.stderr),
        )


def build_run_args(
    *,
    invocation: CopyInvocation,
    tool_command: str,
    os_name: str | None = None,
) -> tuple[str | list[str], str]:
    """Render the tool command for the current platform.

    Windows receives a single command line string so the switch string is
    passed through untouched; elsewhere an argv list is produced.
    """

    stripped = tool_command.strip()
    if not stripped:
        raise BackendRunError("Copy tool command is empty.")

    current_os_name = os_name or os.name
    if current_os_name == "nt":
        rendered = render_windows_command_line(invocation=invocation, tool_command=stripped)
        return rendered, rendered.split(maxsplit=1)[0]

    argv = shlex.split(stripped)
    if invocation.input_file:
        argv.append(f"/JOB:{invocation.input_file}")
    else:
        argv.extend([invocation.source, invocation.destination])
        argv.extend(shlex.split(invocation.file))
        argv.extend(shlex.split(invocation.switches))
    return argv, argv[0]


def render_windows_command_line(*, invocation: CopyInvocation, tool_command: str) -> str:
    """Build a ROBOCOPY command line with Windows quoting rules."""

    if invocation.input_file:
        parts = [tool_command, subprocess.list2cmdline([f"/JOB:{invocation.input_file}"])]
    else:
        parts = [
            tool_command,
            subprocess.list2cmdline(
                [
                    _trim_trailing_separator(invocation.source),
                    _trim_trailing_separator(invocation.destination),
                ],
            ),
            invocation.file.strip(),
            invocation.switches.strip(),
        ]
    return " ".join(part for part in parts if part)


def output_lines(stdout: str | None, stderr: str | None) -> tuple[str, ...]:
    lines = (stdout or "").splitlines()
    lines.extend((stderr or "").splitlines())
    return tuple(lines)


def _trim_trailing_separator(path: str) -> str:
    # A trailing backslash would escape the closing quote; drive roots keep it.
    trimmed = path.rstrip("\\")
    if not trimmed:
        return path
    if trimmed.endswith(":"):
        return trimmed + "\\"
    return trimmed
