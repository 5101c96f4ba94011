"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import socket
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

MIRROR_AGENT_COMMAND = f"{sys.executable} -m robocopy_runner.runner.backend.mirror_agent"

_ENV_PREFIX = "ROBOCOPY_RUNNER_"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Drop runner settings leaking in from the developer environment."""

    for name in list(os.environ):
        if name.startswith(_ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def mirror_agent(monkeypatch):
    """Use the local mirror tool instead of ROBOCOPY."""
    monkeypatch.setenv("ROBOCOPY_RUNNER_TOOL_COMMAND", MIRROR_AGENT_COMMAND)
    return MIRROR_AGENT_COMMAND


@pytest.fixture()
def local_host() -> str:
    """Name of this machine, so local-path tasks pass validation and run locally."""
    return socket.gethostname()


@pytest.fixture()
def write_manifest(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    def _write(payload: dict[str, Any], name: str = "manifest.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2), "utf-8")
        return path

    return _write


@pytest.fixture()
def source_tree(tmp_path: Path) -> Path:
    """Source folder holding one subfolder with one file."""
    root = tmp_path / "source"
    (root / "sub").mkdir(parents=True)
    (root / "sub" / "file.txt").write_text("payload\n", "utf-8")
    return root


@pytest.fixture()
def mirror_task(local_host: str) -> Callable[..., dict[str, Any]]:
    """Build a manifest task mirroring one local folder into another."""

    def _task(
        source: Path,
        destination: Path,
        *,
        name: str | None = None,
        switches: str = "/MIR /R:0 /W:0",
        computer_name: str | None = None,
    ) -> dict[str, Any]:
        task: dict[str, Any] = {
            "ComputerName": computer_name or local_host,
            "Robocopy": {
                "Arguments": {
                    "Source": str(source),
                    "Destination": str(destination),
                    "Switches": switches,
                },
            },
        }
        if name is not None:
            task["Name"] = name
        return task

    return _task


@pytest.fixture()
def read_outbox() -> Callable[[Path], list[str]]:
    """Return the e-mails written by the outbox mailer under a log folder."""

    def _read(log_folder: Path) -> list[str]:
        outbox = log_folder / "outbox"
        if not outbox.is_dir():
            return []
        return [
            path.read_text("utf-8", errors="replace") for path in sorted(outbox.glob("*.eml"))
        ]

    return _read
