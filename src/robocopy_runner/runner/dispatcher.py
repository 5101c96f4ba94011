"""Bounded-concurrency execution of manifest tasks."""

from __future__ import annotations

import logging
import socket
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime

from robocopy_runner.runner.backend import (
    CopyBackend,
    CopyInvocation,
    CopyRunResult,
    RemoteExecutor,
)
from robocopy_runner.runner.event_log import EventLog, EventType
from robocopy_runner.runner.exit_codes import classify_exit_code
from robocopy_runner.runner.models import Task, TaskResult

logger = logging.getLogger(__name__)

_LOOPBACK_NAMES = frozenset({"", ".", "localhost", "127.0.0.1", "::1"})


def local_host_names() -> frozenset[str]:
    """Names under which this machine may appear in a manifest."""

    hostname = socket.gethostname().lower()
    fqdn = socket.getfqdn().lower()
    return _LOOPBACK_NAMES | {hostname, hostname.split(".", 1)[0], fqdn}


def is_local_host(computer_name: str | None, local_names: frozenset[str]) -> bool:
    """Whole-name match; a dotted name never matches on its first label alone."""

    if computer_name is None:
        return True
    return computer_name.strip().lower() in local_names


class TaskDispatcher:
    """Runs every task once on a fixed-width worker pool.

    Each task owns one pre-allocated result slot, so the returned list keeps
    manifest order and accounts for every task exactly once. Failures to
    dispatch are recorded on the task result and never reach sibling tasks.
    """

    def __init__(
        self,
        *,
        local_backend: CopyBackend,
        remote_executor: RemoteExecutor,
        max_concurrent_jobs: int,
        local_names: frozenset[str] | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        if max_concurrent_jobs <= 0:
            raise ValueError("max_concurrent_jobs must be a positive integer.")
        self.local_backend = local_backend
        self.remote_executor = remote_executor
        self.max_concurrent_jobs = max_concurrent_jobs
        self.local_names = local_names if local_names is not None else local_host_names()
        self.event_log = event_log

    def dispatch(self, tasks: Sequence[Task]) -> list[TaskResult]:
        if not tasks:
            return []
        slots: list[TaskResult | None] = [None] * len(tasks)

        logger.info(
            "Dispatching %d task(s) with max %d concurrent job(s)",
            len(tasks),
            self.max_concurrent_jobs,
        )
        with ThreadPoolExecutor(
            max_workers=self.max_concurrent_jobs,
            thread_name_prefix="robocopy-task",
        ) as executor:
            futures = {
                executor.submit(self.execute, task): position
                for position, task in enumerate(tasks)
            }
            for future in as_completed(futures):
                slots[futures[future]] = future.result()

        results = [result for result in slots if result is not None]
        if len(results) != len(tasks):
            raise RuntimeError(
                f"Dispatcher lost task results: expected {len(tasks)}, got {len(results)}.",
            )
        return results

    def execute(self, task: Task) -> TaskResult:
        """Run one task, converting any dispatch failure into result data."""

        started_at = datetime.now(tz=UTC)
        remote = not is_local_host(task.computer_name, self.local_names)
        where = task.computer_name if remote else "localhost"
        logger.info("Task '%s' started on %s", task.label, where)

        try:
            invocation = CopyInvocation.from_task(task)
            run_result = self._run(task, invocation, remote=remote)
        except Exception as error:  # noqa: BLE001
            message = str(error) or type(error).__name__
            logger.warning("Task '%s' could not be executed on %s: %s", task.label, where, message)
            if self.event_log is not None:
                self.event_log.write(
                    EventType.WARNING,
                    f"Task '{task.label}' failed on {where}: {message}",
                )
            return TaskResult(
                task=task,
                task_error=message,
                started_at=started_at,
                finished_at=datetime.now(tz=UTC),
            )

        logger.info(
            "Task '%s' finished on %s with exit code %d (%s)",
            task.label,
            where,
            run_result.exit_code,
            classify_exit_code(run_result.exit_code).value,
        )
        return TaskResult(
            task=task,
            tool_output=run_result.output_lines,
            exit_code=run_result.exit_code,
            started_at=started_at,
            finished_at=datetime.now(tz=UTC),
        )

    def _run(self, task: Task, invocation: CopyInvocation, *, remote: bool) -> CopyRunResult:
        if remote and task.computer_name:
            return self.remote_executor.run_on_host(task.computer_name, invocation)
        return self.local_backend.run(invocation)
