"""Controllers for robocopy runner CLI commands."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from robocopy_runner.config import Settings
from robocopy_runner.runner.artifacts import ArtifactError, RunArtifacts
from robocopy_runner.runner.backend import RobocopyBackend, SshRemoteExecutor
from robocopy_runner.runner.context import RunContext
from robocopy_runner.runner.dispatcher import TaskDispatcher
from robocopy_runner.runner.event_log import (
    EventType,
    attach_event_log_file,
    detach_event_log_file,
)
from robocopy_runner.runner.log_parser import parse_robocopy_log
from robocopy_runner.runner.manifest import (
    ManifestReadError,
    ManifestValidationError,
    load_manifest,
)
from robocopy_runner.runner.models import Manifest, NotificationPolicy, TaskResult
from robocopy_runner.runner.notifier import Mailer, NotificationError, OutboxMailer, SmtpMailer
from robocopy_runner.runner.rendering import (
    render_fatal_html,
    render_report_html,
    render_report_lines,
)
from robocopy_runner.runner.reporter import (
    RunReport,
    build_fatal_message,
    build_run_report,
    plan_notifications,
)

logger = logging.getLogger(__name__)

EVENT_LOG_FILE_NAME = "events.log"
OUTBOX_DIR_NAME = "outbox"
FALLBACK_OUTBOX_DIR_NAME = "robocopy-runner-outbox"


@dataclass(slots=True)
class RunJobCommand:
    """CLI input for a full manifest run."""

    manifest_path: Path
    log_folder: Path | None = None


@dataclass(slots=True)
class ValidateManifestCommand:
    """CLI input for manifest validation without running tasks."""

    manifest_path: Path


@dataclass(slots=True)
class ParseLogCommand:
    """CLI input for summarizing an existing ROBOCOPY log file."""

    log_path: Path
    encoding: str = "utf-8"


@dataclass(slots=True)
class RunJobResult:
    """Lines to render in CLI and the process exit code."""

    lines: list[str]
    exit_code: int


class RobocopyCliController:
    """Coordinates manifest runs, validation and log inspection."""

    def __init__(self, *, mailer: Mailer | None = None) -> None:
        self._mailer = mailer

    def run(self, command: RunJobCommand) -> RunJobResult:
        try:
            settings = Settings.from_env(log_folder=command.log_folder)
            settings.validate()
        except ValueError as error:
            logger.error("Invalid configuration: %s", error)
            return RunJobResult(lines=[f"Configuration error: {error}"], exit_code=1)

        handler = attach_event_log_file(settings.log_folder / EVENT_LOG_FILE_NAME)
        try:
            return self._run(command, settings)
        finally:
            detach_event_log_file(handler)

    def validate(self, command: ValidateManifestCommand) -> RunJobResult:
        """Validate a manifest and list its tasks without executing anything."""

        try:
            manifest = load_manifest(command.manifest_path)
        except (ManifestReadError, ManifestValidationError) as error:
            return RunJobResult(lines=[f"Manifest is invalid: {error}"], exit_code=1)

        policy = manifest.send_mail.when
        lines = [
            f"Manifest is valid: {len(manifest.tasks)} task(s), "
            f"max concurrent jobs {manifest.max_concurrent_jobs}, mail policy {policy.value}",
        ]
        if policy != NotificationPolicy.NEVER:
            lines.append(f"Recipients: {', '.join(manifest.send_mail.to)}")
        for task in manifest.tasks:
            where = task.computer_name or "localhost"
            if task.input_file:
                what = f"job file {task.input_file}"
            elif task.arguments is not None:
                what = f"{task.arguments.source} -> {task.arguments.destination}"
            else:
                what = "-"
            lines.append(f"  {task.index + 1}. {task.label} [{where}] {what}")
        return RunJobResult(lines=lines, exit_code=0)

    def parse_log(self, command: ParseLogCommand) -> RunJobResult:
        try:
            text = command.log_path.read_text(command.encoding, errors="replace")
        except OSError as error:
            return RunJobResult(
                lines=[f"Failed reading log file {command.log_path}: {error}"],
                exit_code=1,
            )

        summary = parse_robocopy_log(text.splitlines())
        if not summary.has_summary:
            return RunJobResult(
                lines=[f"No ROBOCOPY summary found in {command.log_path}"],
                exit_code=1,
            )
        return RunJobResult(
            lines=[
                f"Source: {summary.source}",
                f"Destination: {summary.destination}",
                f"Started: {summary.started}",
                f"Ended: {summary.ended}",
                f"Dirs copied: {summary.dirs.copied} of {summary.dirs.total}",
                f"Files copied: {summary.files.copied} of {summary.files.total}",
                f"Items copied: {summary.items_copied}",
                f"Execution time: {summary.execution_time}",
                f"Parser version: {summary.parser_version}",
            ],
            exit_code=0,
        )

    def _run(self, command: RunJobCommand, settings: Settings) -> RunJobResult:
        started_at = datetime.now(tz=UTC)
        context = RunContext(script_name=settings.script_name)
        mailer = self._mailer or _build_mailer(settings)
        context.event_log.write(EventType.INFORMATION, "Script started")

        artifacts = RunArtifacts(
            settings.log_folder,
            script_name=settings.script_name,
            started_at=started_at.astimezone(),
        )
        try:
            artifacts.prepare()
            manifest = load_manifest(command.manifest_path)
        except ArtifactError as error:
            if self._mailer is None:
                mailer = _build_mailer(settings, log_folder_usable=False)
            return self._fatal(settings=settings, context=context, mailer=mailer, error=str(error))
        except (ManifestReadError, ManifestValidationError) as error:
            return self._fatal(settings=settings, context=context, mailer=mailer, error=str(error))

        try:
            results = TaskDispatcher(
                local_backend=RobocopyBackend(
                    tool_command=settings.tool.command,
                    timeout_seconds=settings.task_timeout,
                    encoding=settings.tool.encoding,
                ),
                remote_executor=SshRemoteExecutor(
                    command_template=settings.remote.command_template,
                    tool_command=settings.remote.tool_command,
                    timeout_seconds=settings.task_timeout,
                    encoding=settings.tool.encoding,
                ),
                max_concurrent_jobs=manifest.max_concurrent_jobs,
                event_log=context.event_log,
            ).dispatch(manifest.tasks)
            return self._report(
                settings=settings,
                context=context,
                mailer=mailer,
                artifacts=artifacts,
                manifest=manifest,
                results=results,
                started_at=started_at,
            )
        except Exception as error:  # noqa: BLE001
            logger.exception("Run aborted by an unexpected error")
            return self._fatal(settings=settings, context=context, mailer=mailer, error=str(error))

    def _report(  # noqa: PLR0913
        self,
        *,
        settings: Settings,
        context: RunContext,
        mailer: Mailer,
        artifacts: RunArtifacts,
        manifest: Manifest,
        results: list[TaskResult],
        started_at: datetime,
    ) -> RunJobResult:
        log_paths: dict[int, Path] = {}
        for result in results:
            try:
                log_paths[result.task.index] = artifacts.write_task_log(result)
            except OSError as error:
                context.add_system_error(
                    "Task log",
                    f"Failed writing the log file of task '{result.task.label}': {error}",
                )

        def build() -> tuple[RunReport, str]:
            report = build_run_report(
                script_name=settings.script_name,
                mail_policy=manifest.send_mail,
                results=results,
                system_errors=context.system_errors,
                log_paths=log_paths,
                started_at=started_at,
                finished_at=datetime.now(tz=UTC),
            )
            return report, render_report_html(report)

        report, html = build()
        try:
            artifacts.write_report(html)
        except OSError as error:
            context.add_system_error("Report log", f"Failed writing the report file: {error}")
            report, html = build()

        exit_code = 0
        attachments = (
            [log_paths[index] for index in sorted(log_paths)]
            if manifest.send_mail.attach_log_files
            else []
        )
        messages = plan_notifications(
            report,
            recipients=manifest.send_mail.to,
            admin_address=settings.smtp.admin_address,
            html_body=html,
            attachments=attachments,
        )
        if report.has_errors and not settings.smtp.admin_address:
            logger.warning("Run finished with errors and no administrator address is configured")

        sent_to: list[str] = []
        for message in messages:
            try:
                mailer.send(message)
            except NotificationError as error:
                context.add_system_error("Mail", str(error))
                exit_code = 1
                continue
            sent_to.extend((*message.to, *message.cc))

        if context.system_errors:
            try:
                artifacts.write_system_errors(context.system_errors)
            except OSError as error:
                logger.error("Failed writing the system errors file: %s", error)

        context.event_log.write(
            EventType.INFORMATION if exit_code == 0 else EventType.WARNING,
            f"Script ended: {report.subject}",
        )
        lines = render_report_lines(report)
        lines.append(f"Log folder: {artifacts.run_dir}")
        lines.append(f"Mail sent to: {', '.join(sent_to)}" if sent_to else "No mail sent")
        return RunJobResult(lines=lines, exit_code=exit_code)

    def _fatal(
        self,
        *,
        settings: Settings,
        context: RunContext,
        mailer: Mailer,
        error: str,
    ) -> RunJobResult:
        context.event_log.write(EventType.ERROR, f"FAILURE: {error}")
        lines = [f"FAILURE: {error}"]
        admin = settings.smtp.admin_address
        if not admin:
            lines.append("No administrator address configured, nobody was notified.")
            return RunJobResult(lines=lines, exit_code=1)

        message = build_fatal_message(
            script_name=settings.script_name,
            admin_address=admin,
            error=error,
            html_body=render_fatal_html(script_name=settings.script_name, error=error),
        )
        try:
            mailer.send(message)
        except NotificationError as mail_error:
            logger.error("Failed notifying the administrator: %s", mail_error)
            lines.append(f"Administrator notification failed: {mail_error}")
        else:
            lines.append(f"Administrator notified: {admin}")
        return RunJobResult(lines=lines, exit_code=1)


def _build_mailer(settings: Settings, *, log_folder_usable: bool = True) -> Mailer:
    if settings.smtp.host:
        return SmtpMailer(
            host=settings.smtp.host,
            port=settings.smtp.port,
            sender=settings.smtp.sender,
            starttls=settings.smtp.starttls,
            username=settings.smtp.username or None,
            password=settings.smtp.password or None,
        )
    if settings.outbox_folder is not None:
        outbox = settings.outbox_folder
    elif log_folder_usable:
        outbox = settings.log_folder / OUTBOX_DIR_NAME
    else:
        outbox = Path(tempfile.gettempdir()) / FALLBACK_OUTBOX_DIR_NAME
        logger.warning(
            "Log folder %s is unusable, writing e-mails to %s",
            settings.log_folder,
            outbox,
        )
    return OutboxMailer(outbox, sender=settings.smtp.sender)
