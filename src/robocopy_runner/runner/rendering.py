"""HTML and plain-text rendering of run reports."""

from __future__ import annotations

from html import escape

from robocopy_runner.runner.models import Outcome
from robocopy_runner.runner.reporter import ReportRow, RunReport

_CSS = """
body { font-family: Segoe UI, Arial, sans-serif; font-size: 13px; color: #222; }
h2 { font-size: 16px; margin-bottom: 4px; }
table { border-collapse: collapse; margin-top: 8px; }
th, td { border: 1px solid #bbb; padding: 4px 8px; text-align: left; vertical-align: top; }
th { background: #e8e8e8; }
td.ok { color: #1b5e20; }
td.warn { color: #e65100; }
td.error { color: #b71c1c; font-weight: bold; }
p.errors { color: #b71c1c; font-weight: bold; }
p.muted { color: #666; font-size: 11px; }
"""

_OUTCOME_CSS_CLASS = {
    Outcome.NO_CHANGE: "ok",
    Outcome.COPY_OK: "ok",
    Outcome.MISMATCH: "warn",
}


def render_report_html(report: RunReport) -> str:
    """Render the report payload as a standalone HTML document."""

    html = (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        f"<title>{escape(report.subject)}</title><style>{_CSS}</style></head><body>"
    )
    html += f"<h2>{escape(report.script_name)}</h2>"
    if report.header:
        html += f"<p>{escape(report.header)}</p>"

    if report.errors_overview:
        html += "<p class='errors'>Errors overview:</p><ul>"
        for line in report.errors_overview:
            html += f"<li>{escape(line)}</li>"
        html += "</ul>"

    if report.system_errors:
        html += "<h2>System errors</h2><table><tr><th>Source</th><th>Message</th></tr>"
        for entry in report.system_errors:
            html += f"<tr><td>{escape(entry.source)}</td><td>{escape(entry.message)}</td></tr>"
        html += "</table>"

    html += (
        "<h2>Tasks</h2><table><tr>"
        "<th>Task</th><th>Computer</th><th>Source</th><th>Destination</th>"
        "<th>Result</th><th>Execution time</th><th>Items copied</th><th>Log</th></tr>"
    )
    for row in report.rows:
        html += _render_row(row)
    html += "</table>"

    html += (
        "<p>"
        f"Tasks: {len(report.rows)}<br>"
        f"Items copied: {report.counters.items_copied}<br>"
        f"Errors: {report.counters.total_errors}"
        "</p>"
    )
    if report.started_at is not None and report.finished_at is not None:
        html += (
            "<p class='muted'>"
            f"Started {report.started_at:%Y-%m-%d %H:%M:%S %Z}, "
            f"finished {report.finished_at:%Y-%m-%d %H:%M:%S %Z}"
            "</p>"
        )
    html += "</body></html>"
    return html


def render_report_lines(report: RunReport) -> list[str]:
    """Plain-text summary for the CLI."""

    lines = [report.subject]
    for row in report.rows:
        exit_code = "-" if row.exit_code is None else str(row.exit_code)
        lines.append(
            f"  [{row.outcome.value}] {row.label} exit_code={exit_code} "
            f"items_copied={row.items_copied} time={row.execution_time}",
        )
        if row.task_error:
            lines.append(f"      error: {row.task_error}")
    lines.extend(f"  ! {line}" for line in report.errors_overview)
    lines.extend(f"  ! {entry.source}: {entry.message}" for entry in report.system_errors)
    return lines


def render_fatal_html(*, script_name: str, error: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        f"<style>{_CSS}</style></head><body>"
        f"<h2>{escape(script_name)}</h2>"
        "<p class='errors'>The run was aborted by an unrecoverable error.</p>"
        f"<p>{escape(error)}</p>"
        "</body></html>"
    )


def _render_row(row: ReportRow) -> str:
    css_class = _OUTCOME_CSS_CLASS.get(row.outcome, "error")
    if row.exit_code is None:
        result = f"{row.outcome.value}: {row.outcome_message}"
    else:
        result = f"{row.outcome.value} ({row.exit_code}): {row.outcome_message}"
    source = row.source or row.input_file
    log_reference = row.log_path.name if row.log_path is not None else ""
    return (
        "<tr>"
        f"<td>{escape(row.label)}</td>"
        f"<td>{escape(row.computer_name)}</td>"
        f"<td>{escape(source)}</td>"
        f"<td>{escape(row.destination)}</td>"
        f"<td class='{css_class}'>{escape(result)}</td>"
        f"<td>{escape(row.execution_time)}</td>"
        f"<td>{row.items_copied}</td>"
        f"<td>{escape(log_reference)}</td>"
        "</tr>"
    )
