"""Aggregation of task results into counters, report rows and mail decisions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from robocopy_runner.runner.exit_codes import classify_result, describe_exit_code, is_error_outcome
from robocopy_runner.runner.log_parser import NOT_AVAILABLE, parse_robocopy_log
from robocopy_runner.runner.models import (
    MailMessage,
    MailPolicy,
    MailPriority,
    NotificationPolicy,
    Outcome,
    RunCounters,
    SystemErrorEntry,
    TaskResult,
)


@dataclass(slots=True)
class ReportRow:
    """One table row of the report, derived from a single task result."""

    label: str
    computer_name: str
    source: str
    destination: str
    input_file: str
    outcome: Outcome
    outcome_message: str
    exit_code: int | None
    execution_time: str
    items_copied: int
    log_path: Path | None = None
    task_error: str | None = None


@dataclass(slots=True)
class RunReport:
    """Report payload consumed by renderers and the mail planner."""

    script_name: str
    subject: str
    header: str | None
    policy: NotificationPolicy
    counters: RunCounters
    rows: list[ReportRow] = field(default_factory=list)
    system_errors: list[SystemErrorEntry] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def has_errors(self) -> bool:
        return self.counters.total_errors > 0

    @property
    def errors_overview(self) -> list[str]:
        overview: list[str] = []
        if self.counters.system_errors:
            overview.append(
                f"{self.counters.system_errors} "
                f"{_plural(self.counters.system_errors, 'system error')}",
            )
        if self.counters.dispatch_errors:
            overview.append(
                f"{self.counters.dispatch_errors} "
                f"{_plural(self.counters.dispatch_errors, 'task')} could not be executed",
            )
        if self.counters.tool_errors:
            overview.append(
                f"{self.counters.tool_errors} "
                f"{_plural(self.counters.tool_errors, 'task')} with a bad robocopy exit code",
            )
        return overview


def build_run_report(  # noqa: PLR0913
    *,
    script_name: str,
    mail_policy: MailPolicy,
    results: Sequence[TaskResult],
    system_errors: Sequence[SystemErrorEntry] = (),
    log_paths: Mapping[int, Path] | None = None,
    started_at: datetime | None = None,
    finished_at: datetime | None = None,
) -> RunReport:
    """Classify every result, count errors and copied items, and build the subject."""

    counters = RunCounters(system_errors=len(system_errors))
    rows: list[ReportRow] = []
    for result in sorted(results, key=lambda item: item.task.index):
        row = build_report_row(result, log_path=(log_paths or {}).get(result.task.index))
        if row.outcome == Outcome.DISPATCH_ERROR:
            counters.dispatch_errors += 1
        elif is_error_outcome(row.outcome):
            counters.tool_errors += 1
        counters.items_copied += row.items_copied
        rows.append(row)

    return RunReport(
        script_name=script_name,
        subject=build_subject(
            task_count=len(rows),
            items_copied=counters.items_copied,
            total_errors=counters.total_errors,
            subject_override=mail_policy.subject,
        ),
        header=mail_policy.header,
        policy=mail_policy.when,
        counters=counters,
        rows=rows,
        system_errors=list(system_errors),
        started_at=started_at,
        finished_at=finished_at,
    )


def build_report_row(result: TaskResult, *, log_path: Path | None = None) -> ReportRow:
    task = result.task
    outcome = classify_result(result)
    source = task.arguments.source if task.arguments is not None else ""
    destination = task.arguments.destination if task.arguments is not None else ""

    if outcome == Outcome.DISPATCH_ERROR:
        return ReportRow(
            label=task.label,
            computer_name=task.computer_name or "",
            source=source,
            destination=destination,
            input_file=task.input_file or "",
            outcome=outcome,
            outcome_message=result.task_error or "Task was not executed.",
            exit_code=None,
            execution_time=NOT_AVAILABLE,
            items_copied=0,
            log_path=log_path,
            task_error=result.task_error,
        )

    summary = parse_robocopy_log(result.tool_output)
    exit_code = result.exit_code if result.exit_code is not None else -1
    return ReportRow(
        label=task.label,
        computer_name=task.computer_name or "",
        source=source or summary.source,
        destination=destination or summary.destination,
        input_file=task.input_file or "",
        outcome=outcome,
        outcome_message=describe_exit_code(exit_code),
        exit_code=result.exit_code,
        execution_time=summary.execution_time,
        items_copied=summary.items_copied,
        log_path=log_path,
    )


def build_subject(
    *,
    task_count: int,
    items_copied: int,
    total_errors: int,
    subject_override: str | None = None,
) -> str:
    lead = subject_override or f"{task_count} robocopy {_plural(task_count, 'task')}"
    subject = f"{lead}, {items_copied} {_plural(items_copied, 'item')} copied"
    if total_errors:
        subject += f", {total_errors} {_plural(total_errors, 'error')}"
    return subject


def should_notify_user(policy: NotificationPolicy, counters: RunCounters) -> bool:
    """Decide whether the manifest recipients receive the report."""

    if policy == NotificationPolicy.ALWAYS:
        return True
    if policy == NotificationPolicy.ONLY_ON_ERROR:
        return counters.total_errors > 0
    if policy == NotificationPolicy.ONLY_ON_ERROR_OR_ACTION:
        return counters.total_errors > 0 or counters.items_copied > 0
    return False


def plan_notifications(
    report: RunReport,
    *,
    recipients: Sequence[str],
    admin_address: str | None,
    html_body: str,
    attachments: Sequence[Path] = (),
) -> list[MailMessage]:
    """Build the e-mails to send for a completed run.

    The admin channel ignores the manifest policy: on errors the admin is
    cc'd on the user e-mail, or mailed alone when the user e-mail is
    suppressed.
    """

    priority = MailPriority.HIGH if report.has_errors else MailPriority.NORMAL
    admin = (admin_address or "").strip()
    messages: list[MailMessage] = []

    if should_notify_user(report.policy, report.counters) and recipients:
        cc: tuple[str, ...] = ()
        if report.has_errors and admin and admin.lower() not in {
            address.lower() for address in recipients
        }:
            cc = (admin,)
        messages.append(
            MailMessage(
                to=tuple(recipients),
                cc=cc,
                subject=report.subject,
                html_body=html_body,
                priority=priority,
                attachments=list(attachments),
            ),
        )
    elif report.has_errors and admin:
        messages.append(
            MailMessage(
                to=(admin,),
                subject=report.subject,
                html_body=html_body,
                priority=priority,
                attachments=list(attachments),
            ),
        )
    return messages


def build_fatal_message(
    *,
    script_name: str,
    admin_address: str,
    error: str,
    html_body: str,
) -> MailMessage:
    """Admin-only, high priority notification for a run that could not start."""

    return MailMessage(
        to=(admin_address,),
        subject=f"{script_name}: FAILURE - {_first_line(error)}",
        html_body=html_body,
        priority=MailPriority.HIGH,
    )


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def _first_line(text: str, *, limit: int = 120) -> str:
    line = text.strip().splitlines()[0] if text.strip() else "unknown error"
    return line if len(line) <= limit else line[:limit] + "..."
