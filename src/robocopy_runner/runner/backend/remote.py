"""Remote execution of the copy tool through a command transport such as ssh."""

from __future__ import annotations

import shlex
import subprocess

from robocopy_runner.runner.backend.base import (
    CopyInvocation,
    CopyRunResult,
    RemoteExecutionError,
)
from robocopy_runner.runner.backend.cli_backend import output_lines, render_windows_command_line

TRANSPORT_FAILURE_EXIT_CODE = 255


class SshRemoteExecutor:
    """Run the tool on a remote Windows host through a transport command.

    The transport template is rendered with ``{host}`` and the Windows
    command line of the tool is appended as its last argument. An exit code
    of 255 is reserved by ssh for connection and authentication failures.
    """

    def __init__(
        self,
        *,
        command_template: str = "ssh -o BatchMode=yes {host}",
        tool_command: str = "robocopy",
        timeout_seconds: int | None = None,
        encoding: str | None = None,
    ) -> None:
        self.command_template = command_template
        self.tool_command = tool_command
        self.timeout_seconds = timeout_seconds
        self.encoding = encoding

    def run_on_host(self, host: str, invocation: CopyInvocation) -> CopyRunResult:
        remote_command = render_windows_command_line(
            invocation=invocation,
            tool_command=self.tool_command,
        )
        argv = build_transport_args(command_template=self.command_template, host=host)
        argv.append(remote_command)

        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                check=False,
                capture_output=True,
                text=True,
                encoding=self.encoding,
                errors="replace",
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as error:
            raise RemoteExecutionError(
                f"Remote transport command not found: {argv[0]}",
                host=host,
            ) from error
        except subprocess.TimeoutExpired as error:
            raise RemoteExecutionError(
                f"Remote execution on '{host}' did not finish within "
                f"{self.timeout_seconds} seconds.",
                host=host,
            ) from error
        except OSError as error:
            raise RemoteExecutionError(
                f"Remote transport failed to start for '{host}': {error}",
                host=host,
            ) from error

        if completed.returncode == TRANSPORT_FAILURE_EXIT_CODE:
            detail = _truncate(completed.stderr or "") or "transport exit code 255"
            raise RemoteExecutionError(
                f"Remote execution on '{host}' failed: {detail}",
                host=host,
            )

        return CopyRunResult(
            exit_code=completed.returncode,
            output_lines=output_lines(completed.stdout, completed.stderr),
        )


def build_transport_args(*, command_template: str, host: str) -> list[str]:
    stripped = command_template.strip()
    try:
        rendered = stripped.format(host=shlex.quote(host))
    except (KeyError, IndexError) as error:
        raise RemoteExecutionError(
            f"Unsupported remote command template placeholder: {error}",
            host=host,
        ) from error
    argv = shlex.split(rendered)
    if not argv:
        raise RemoteExecutionError("Remote command template rendered empty command.", host=host)
    return argv


def _truncate(value: str, *, limit: int = 240) -> str:
    compact = value.strip().replace("\n", " ")
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "..."
