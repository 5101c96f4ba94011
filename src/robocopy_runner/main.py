"""CLI entrypoint for robocopy-runner."""

import logging
from pathlib import Path

import rich_click as click

from robocopy_runner import __version__
from robocopy_runner.runner.controllers import (
    ParseLogCommand,
    RobocopyCliController,
    RunJobCommand,
    RunJobResult,
    ValidateManifestCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = RobocopyCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="robocopy-runner")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Console log level.",
)
def robocopy_runner(log_level: str) -> None:
    """Run ROBOCOPY tasks from a JSON manifest and report the results.

    Environment variables prefixed with `ROBOCOPY_RUNNER_` configure the copy
    tool, the remote transport and mail delivery.
    """

    _configure_logging(log_level.upper())


@robocopy_runner.command("run")
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(path_type=Path),
    required=True,
    help="JSON job manifest.",
)
@click.option(
    "--log-folder",
    type=click.Path(path_type=Path),
    default=None,
    help="Log root folder. If omitted, ROBOCOPY_RUNNER_LOG_FOLDER is used.",
)
def run(manifest_path: Path, log_folder: Path | None) -> None:
    """Execute every manifest task and send the report."""

    _emit_result(
        CONTROLLER.run(RunJobCommand(manifest_path=manifest_path, log_folder=log_folder)),
    )


@robocopy_runner.command("validate")
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(path_type=Path),
    required=True,
    help="JSON job manifest.",
)
def validate(manifest_path: Path) -> None:
    """Validate a manifest and list its tasks without copying anything."""

    _emit_result(CONTROLLER.validate(ValidateManifestCommand(manifest_path=manifest_path)))


@robocopy_runner.command("parse-log")
@click.argument("log_path", type=click.Path(path_type=Path))
@click.option("--encoding", default="utf-8", show_default=True, help="Log file encoding.")
def parse_log(log_path: Path, encoding: str) -> None:
    """Summarize an existing ROBOCOPY log file."""

    _emit_result(CONTROLLER.parse_log(ParseLogCommand(log_path=log_path, encoding=encoding)))


def _configure_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def _emit_result(result: RunJobResult) -> None:
    _emit_lines(result.lines)
    if result.exit_code:
        click.get_current_context().exit(result.exit_code)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    robocopy_runner()
