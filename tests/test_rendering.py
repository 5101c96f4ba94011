from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import allure

from robocopy_runner.runner.models import (
    MailPolicy,
    NotificationPolicy,
    RobocopyArguments,
    SystemErrorEntry,
    Task,
    TaskResult,
)
from robocopy_runner.runner.rendering import (
    render_fatal_html,
    render_report_html,
    render_report_lines,
)
from robocopy_runner.runner.reporter import build_run_report

pytestmark = [
    allure.epic("Robocopy Runner"),
    allure.feature("Report & Notification"),
]


def _report():
    ok = Task(
        index=0,
        name="<Finance>",
        computer_name="srv01",
        arguments=RobocopyArguments(source="D:\\fin", destination="E:\\fin", switches="/MIR"),
    )
    broken = Task(index=1, computer_name="srv02", input_file="D:\\jobs\\hr.rcj")
    return build_run_report(
        script_name="Robocopy",
        mail_policy=MailPolicy(
            to=("ops@example.com",),
            when=NotificationPolicy.ALWAYS,
            header="Nightly copies & checks",
        ),
        results=[
            TaskResult(task=ok, exit_code=1, tool_output=()),
            TaskResult(task=broken, task_error="Remote execution on 'srv02' failed"),
        ],
        system_errors=[
            SystemErrorEntry(
                source="Report log",
                message="Failed writing the report file",
                occurred_at=datetime.now(tz=UTC),
            ),
        ],
        log_paths={0: Path("/logs/001 - Finance.log")},
        started_at=datetime(2024, 3, 4, 22, 0, tzinfo=UTC),
        finished_at=datetime(2024, 3, 4, 22, 5, tzinfo=UTC),
    )


def test_html_report_escapes_and_lists_everything() -> None:
    html = render_report_html(_report())

    assert "&lt;Finance&gt;" in html
    assert "<Finance>" not in html
    assert "Nightly copies &amp; checks" in html
    assert "Errors overview:" in html
    assert "Failed writing the report file" in html
    assert "DispatchError: Remote execution on &#x27;srv02&#x27; failed" in html
    assert "CopyOk (1): All files were copied successfully." in html
    assert "001 - Finance.log" in html
    assert "D:\\jobs\\hr.rcj" in html
    assert "Started 2024-03-04 22:00:00 UTC" in html


def test_report_lines_for_cli() -> None:
    lines = render_report_lines(_report())

    assert lines[0] == "2 robocopy tasks, 0 items copied, 2 errors"
    assert "  [CopyOk] <Finance> exit_code=1 items_copied=0 time=NA" in lines
    assert "      error: Remote execution on 'srv02' failed" in lines
    assert "  ! Report log: Failed writing the report file" in lines


def test_fatal_html_carries_error_text() -> None:
    html = render_fatal_html(script_name="Robocopy", error="Property 'Tasks' <missing>")

    assert "Property &#x27;Tasks&#x27; &lt;missing&gt;" in html
    assert "aborted" in html
