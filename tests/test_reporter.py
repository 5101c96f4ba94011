from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import allure
import pytest

from robocopy_runner.runner.models import (
    MailPolicy,
    MailPriority,
    NotificationPolicy,
    Outcome,
    RobocopyArguments,
    RunCounters,
    SystemErrorEntry,
    Task,
    TaskResult,
)
from robocopy_runner.runner.reporter import (
    build_fatal_message,
    build_run_report,
    build_subject,
    plan_notifications,
    should_notify_user,
)

pytestmark = [
    allure.epic("Robocopy Runner"),
    allure.feature("Report & Notification"),
]

_FILES_COPIED_TWO = "   Files :         3         2         1         0         0         0"
_DIRS_COPIED_ONE = "    Dirs :         2         1         1         0         0         0"
_TIMES = "   Times :   0:00:07   0:00:05                       0:00:00   0:00:02"


def _task(index: int = 0) -> Task:
    return Task(
        index=index,
        name=f"job {index}",
        computer_name="srv01",
        arguments=RobocopyArguments(source="D:\\a", destination="E:\\a", switches="/MIR"),
    )


def _copied(index: int = 0) -> TaskResult:
    return TaskResult(
        task=_task(index),
        exit_code=1,
        tool_output=(_DIRS_COPIED_ONE, _FILES_COPIED_TWO, _TIMES),
    )


def _unchanged(index: int = 0) -> TaskResult:
    return TaskResult(task=_task(index), exit_code=0, tool_output=())


def _dispatch_failure(index: int = 0) -> TaskResult:
    return TaskResult(task=_task(index), task_error="Copy tool command not found: robocopy")


def _policy(when: NotificationPolicy, **kwargs) -> MailPolicy:
    return MailPolicy(to=("ops@example.com",), when=when, **kwargs)


def _plan(report, *, admin: str | None = None):
    return plan_notifications(
        report,
        recipients=("ops@example.com",),
        admin_address=admin,
        html_body="<html></html>",
    )


@pytest.mark.parametrize(
    ("policy", "errors", "copied", "expected"),
    [
        (NotificationPolicy.NEVER, 0, 0, False),
        (NotificationPolicy.NEVER, 1, 5, False),
        (NotificationPolicy.ALWAYS, 0, 0, True),
        (NotificationPolicy.ONLY_ON_ERROR, 0, 5, False),
        (NotificationPolicy.ONLY_ON_ERROR, 1, 0, True),
        (NotificationPolicy.ONLY_ON_ERROR_OR_ACTION, 0, 0, False),
        (NotificationPolicy.ONLY_ON_ERROR_OR_ACTION, 0, 1, True),
        (NotificationPolicy.ONLY_ON_ERROR_OR_ACTION, 1, 0, True),
    ],
)
def test_should_notify_user_policy_table(
    policy: NotificationPolicy,
    errors: int,
    copied: int,
    expected: bool,
) -> None:
    counters = RunCounters(items_copied=copied, tool_errors=errors)

    assert should_notify_user(policy, counters) is expected


def test_counters_and_rows_from_mixed_results() -> None:
    results = [
        _copied(0),
        _unchanged(1),
        _dispatch_failure(2),
        TaskResult(task=_task(3), exit_code=8, tool_output=()),
    ]

    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(NotificationPolicy.ALWAYS),
        results=results,
        system_errors=[
            SystemErrorEntry(
                source="Task log",
                message="disk full",
                occurred_at=datetime.now(tz=UTC),
            ),
        ],
    )

    assert [row.outcome for row in report.rows] == [
        Outcome.COPY_OK,
        Outcome.NO_CHANGE,
        Outcome.DISPATCH_ERROR,
        Outcome.FAIL,
    ]
    assert report.counters == RunCounters(
        items_copied=3,
        tool_errors=1,
        dispatch_errors=1,
        system_errors=1,
    )
    assert report.rows[0].execution_time == "0:00:07"
    assert report.rows[1].execution_time == "NA"
    assert report.rows[2].outcome_message == "Copy tool command not found: robocopy"
    assert report.errors_overview == [
        "1 system error",
        "1 task could not be executed",
        "1 task with a bad robocopy exit code",
    ]


def test_only_on_error_without_errors_sends_nothing() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(NotificationPolicy.ONLY_ON_ERROR),
        results=[_copied(0), _unchanged(1)],
    )

    assert report.counters.total_errors == 0
    assert _plan(report, admin="admin@example.com") == []


def test_only_on_error_with_dispatch_error_sends_one_user_mail() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(NotificationPolicy.ONLY_ON_ERROR),
        results=[_copied(0), _dispatch_failure(1)],
    )

    messages = _plan(report)

    assert report.counters.total_errors == 1
    assert len(messages) == 1
    assert messages[0].to == ("ops@example.com",)
    assert messages[0].cc == ()
    assert messages[0].priority == MailPriority.HIGH


def test_admin_is_copied_on_user_mail_with_errors() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(NotificationPolicy.ALWAYS),
        results=[_dispatch_failure(0)],
    )

    messages = _plan(report, admin="admin@example.com")

    assert len(messages) == 1
    assert messages[0].cc == ("admin@example.com",)


def test_never_policy_with_errors_mails_only_the_admin() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=MailPolicy(to=(), when=NotificationPolicy.NEVER),
        results=[_dispatch_failure(0)],
    )

    messages = plan_notifications(
        report,
        recipients=(),
        admin_address="admin@example.com",
        html_body="<html></html>",
        attachments=[Path("001 - job 0.log")],
    )

    assert len(messages) == 1
    assert messages[0].to == ("admin@example.com",)
    assert messages[0].priority == MailPriority.HIGH
    assert messages[0].attachments == [Path("001 - job 0.log")]


def test_successful_run_has_normal_priority() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(NotificationPolicy.ALWAYS),
        results=[_copied(0)],
    )

    messages = _plan(report, admin="admin@example.com")

    assert messages[0].priority == MailPriority.NORMAL
    assert messages[0].cc == ()


def test_subject_reports_tasks_items_and_errors() -> None:
    assert build_subject(task_count=1, items_copied=1, total_errors=0) == (
        "1 robocopy task, 1 item copied"
    )
    assert build_subject(task_count=3, items_copied=0, total_errors=2) == (
        "3 robocopy tasks, 0 items copied, 2 errors"
    )
    assert build_subject(
        task_count=3,
        items_copied=4,
        total_errors=0,
        subject_override="Nightly backup",
    ) == ("Nightly backup, 4 items copied")


def test_report_uses_manifest_subject_and_header() -> None:
    report = build_run_report(
        script_name="Robocopy",
        mail_policy=_policy(
            NotificationPolicy.ALWAYS,
            subject="Nightly backup",
            header="Copies of the finance shares.",
        ),
        results=[_copied(0)],
    )

    assert report.subject == "Nightly backup, 3 items copied"
    assert report.header == "Copies of the finance shares."


def test_fatal_message_goes_to_admin_with_high_priority() -> None:
    message = build_fatal_message(
        script_name="Robocopy",
        admin_address="admin@example.com",
        error="Property 'Tasks' not found.\nmore detail",
        html_body="<html></html>",
    )

    assert message.to == ("admin@example.com",)
    assert message.subject == "Robocopy: FAILURE - Property 'Tasks' not found."
    assert message.priority == MailPriority.HIGH
