"""Copy tool backends."""

from robocopy_runner.runner.backend.base import (
    BackendRunError,
    CopyBackend,
    CopyInvocation,
    CopyRunResult,
    RemoteExecutionError,
    RemoteExecutor,
)
from robocopy_runner.runner.backend.cli_backend import RobocopyBackend
from robocopy_runner.runner.backend.remote import SshRemoteExecutor

__all__ = [
    "BackendRunError",
    "CopyBackend",
    "CopyInvocation",
    "CopyRunResult",
    "RemoteExecutionError",
    "RemoteExecutor",
    "RobocopyBackend",
    "SshRemoteExecutor",
]
