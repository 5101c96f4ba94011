from __future__ import annotations

import socket
import threading
import time

import allure
import pytest

from robocopy_runner.runner.backend import (
    BackendRunError,
    CopyInvocation,
    CopyRunResult,
    RemoteExecutionError,
)
from robocopy_runner.runner.dispatcher import TaskDispatcher, is_local_host, local_host_names
from robocopy_runner.runner.event_log import EventLog, EventType
from robocopy_runner.runner.models import (
    MailPolicy,
    NotificationPolicy,
    Outcome,
    RobocopyArguments,
    Task,
)
from robocopy_runner.runner.reporter import build_run_report

pytestmark = [
    allure.epic("Robocopy Runner"),
    allure.feature("Task Dispatch"),
]

_LOCAL_NAMES = frozenset({"", ".", "localhost", "build01", "build01.corp.example.com"})


def _task(index: int, *, computer_name: str | None = "build01") -> Task:
    return Task(
        index=index,
        name=f"task-{index}",
        computer_name=computer_name,
        arguments=RobocopyArguments(
            source=f"D:\\src\\{index}",
            destination=f"E:\\dst\\{index}",
            switches="/MIR",
        ),
    )


class _FakeBackend:
    """Returns an exit code derived from the source folder index."""

    def __init__(self, *, delay: float = 0.0, failing: frozenset[str] = frozenset()) -> None:
        self.delay = delay
        self.failing = failing
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.calls: list[CopyInvocation] = []

    def run(self, invocation: CopyInvocation) -> CopyRunResult:
        with self.lock:
            self.calls.append(invocation)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            if invocation.source in self.failing:
                raise BackendRunError(f"Copy tool command not found for {invocation.source}")
            index = int(invocation.source.rsplit("\\", 1)[-1])
            exit_code = index % 4
            return CopyRunResult(
                exit_code=exit_code,
                output_lines=(
                    f"   Files :         2         {exit_code % 2}         0         0"
                    "         0         0",
                    "   Times :   0:00:01   0:00:01                       0:00:00   0:00:00",
                ),
            )
        finally:
            with self.lock:
                self.active -= 1


class _FakeRemote:
    def __init__(self, *, refuse: bool = False) -> None:
        self.refuse = refuse
        self.hosts: list[str] = []

    def run_on_host(self, host: str, invocation: CopyInvocation) -> CopyRunResult:
        self.hosts.append(host)
        if self.refuse:
            raise RemoteExecutionError(f"Remote execution on '{host}' failed", host=host)
        return CopyRunResult(exit_code=1, output_lines=())


def _dispatcher(backend, remote=None, *, jobs: int, event_log=None) -> TaskDispatcher:
    return TaskDispatcher(
        local_backend=backend,
        remote_executor=remote or _FakeRemote(),
        max_concurrent_jobs=jobs,
        local_names=_LOCAL_NAMES,
        event_log=event_log,
    )


def test_results_keep_manifest_order_and_cover_every_task() -> None:
    tasks = [_task(index) for index in range(10)]
    backend = _FakeBackend(delay=0.01)

    results = _dispatcher(backend, jobs=4).dispatch(tasks)

    assert [result.task.index for result in results] == list(range(10))
    assert [result.exit_code for result in results] == [index % 4 for index in range(10)]
    assert len(backend.calls) == 10


def test_concurrency_never_exceeds_limit() -> None:
    backend = _FakeBackend(delay=0.05)

    _dispatcher(backend, jobs=3).dispatch([_task(index) for index in range(9)])

    assert 1 <= backend.peak <= 3


def test_serial_and_parallel_runs_produce_same_counters() -> None:
    tasks = [_task(index) for index in range(12)]
    policy = MailPolicy(to=("ops@example.com",), when=NotificationPolicy.ALWAYS)

    serial = _dispatcher(_FakeBackend(delay=0.005), jobs=1).dispatch(tasks)
    parallel = _dispatcher(_FakeBackend(delay=0.005), jobs=6).dispatch(tasks)

    def summary(results):
        report = build_run_report(script_name="Robocopy", mail_policy=policy, results=results)
        return (
            [(row.label, row.outcome, row.exit_code) for row in report.rows],
            report.counters,
        )

    assert summary(serial) == summary(parallel)


def test_dispatch_error_is_isolated_to_its_task() -> None:
    tasks = [_task(index) for index in range(5)]
    backend = _FakeBackend(failing=frozenset({"D:\\src\\2"}))
    event_log = EventLog("Robocopy")

    results = _dispatcher(backend, jobs=2, event_log=event_log).dispatch(tasks)

    assert results[2].exit_code is None
    assert results[2].task_error is not None
    assert "Copy tool command not found" in results[2].task_error
    assert all(
        result.task_error is None for position, result in enumerate(results) if position != 2
    )
    warnings = [entry for entry in event_log.entries if entry.entry_type == EventType.WARNING]
    assert len(warnings) == 1
    assert "task-2" in warnings[0].message


def test_remote_tasks_go_through_remote_executor() -> None:
    backend = _FakeBackend()
    remote = _FakeRemote()
    tasks = [_task(0), _task(1, computer_name="fileserver02"), _task(2, computer_name=None)]

    results = _dispatcher(backend, remote, jobs=2).dispatch(tasks)

    assert remote.hosts == ["fileserver02"]
    assert sorted(call.source for call in backend.calls) == ["D:\\src\\0", "D:\\src\\2"]
    assert results[1].exit_code == 1


def test_refused_remote_connection_becomes_dispatch_error() -> None:
    tasks = [_task(0, computer_name="offline01"), _task(1)]
    policy = MailPolicy(to=("ops@example.com",), when=NotificationPolicy.ONLY_ON_ERROR)

    results = _dispatcher(_FakeBackend(), _FakeRemote(refuse=True), jobs=2).dispatch(tasks)
    report = build_run_report(script_name="Robocopy", mail_policy=policy, results=results)

    assert report.rows[0].outcome == Outcome.DISPATCH_ERROR
    assert report.rows[1].outcome == Outcome.COPY_OK
    assert report.counters.dispatch_errors == 1
    assert report.counters.total_errors == 1


def test_empty_task_list_returns_no_results() -> None:
    assert _dispatcher(_FakeBackend(), jobs=2).dispatch([]) == []


def test_max_concurrent_jobs_must_be_positive() -> None:
    with pytest.raises(ValueError, match="positive"):
        _dispatcher(_FakeBackend(), jobs=0)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        (None, True),
        ("", True),
        (".", True),
        ("LOCALHOST", True),
        ("build01", True),
        ("Build01.corp.example.com", True),
        ("build01.branch-office.example.net", False),
        ("build01.corp", False),
        ("fileserver02", False),
    ],
)
def test_is_local_host(name: str | None, expected: bool) -> None:
    assert is_local_host(name, _LOCAL_NAMES) is expected


def test_local_host_names_include_this_machine() -> None:
    assert socket.gethostname().lower() in local_host_names()
