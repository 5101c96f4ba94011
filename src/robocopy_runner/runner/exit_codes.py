"""Deterministic classification of ROBOCOPY exit codes.

The exit code is a bit field: bit0 files copied, bit1 extra files in the
destination, bit2 mismatched files, bit3 copy failures. 16 is reserved for a
fatal error where nothing was copied.
"""

from __future__ import annotations

from robocopy_runner.runner.models import Outcome, TaskResult

EXIT_CODE_CLASSIFIER_VERSION = 1

FATAL_EXIT_CODE = 16

_BIT_COPIED = 0x1
_BIT_EXTRAS = 0x2
_BIT_MISMATCH = 0x4
_BIT_FAILED = 0x8

EXIT_CODE_MESSAGES: dict[int, str] = {
    0: "No files were copied, no failure was encountered, no files were mismatched. "
    "The files already exist in the destination directory.",
    1: "All files were copied successfully.",
    2: "There are some additional files in the destination directory that are not "
    "present in the source directory. No files were copied.",
    3: "Some files were copied. Additional files were present. No failure was encountered.",
    4: "Some mismatched files or directories were detected. Examine the output log. "
    "Housekeeping might be required.",
    5: "Some files were copied. Some files were mismatched. No failure was encountered.",
    6: "Additional files and mismatched files exist. No files were copied and no failures "
    "were encountered.",
    7: "Files were copied, a file mismatch was present, and additional files were present.",
    8: "Several files did not copy.",
    9: "Some files were copied. Several files did not copy.",
    10: "Additional files were present. Several files did not copy.",
    11: "Some files were copied. Additional files were present. Several files did not copy.",
    12: "Mismatched files were present. Several files did not copy.",
    13: "Some files were copied. Mismatched files were present. Several files did not copy.",
    14: "Additional and mismatched files were present. Several files did not copy.",
    15: "Some files were copied. Additional and mismatched files were present. "
    "Several files did not copy.",
    16: "Serious error. Robocopy did not copy any files. Either a usage error or an error "
    "due to insufficient access privileges on the source or destination directories.",
}

_SUCCESS_OUTCOMES = frozenset({Outcome.NO_CHANGE, Outcome.COPY_OK})


def classify_exit_code(exit_code: int) -> Outcome:
    """Map a tool exit code to its outcome category."""

    if exit_code == 0:
        return Outcome.NO_CHANGE
    if exit_code == FATAL_EXIT_CODE:
        return Outcome.FATAL_ERROR
    if exit_code < 0 or exit_code > FATAL_EXIT_CODE:
        return Outcome.UNKNOWN
    if exit_code & _BIT_FAILED:
        return Outcome.FAIL
    if exit_code & _BIT_MISMATCH:
        return Outcome.MISMATCH
    if exit_code & (_BIT_COPIED | _BIT_EXTRAS):
        return Outcome.COPY_OK
    return Outcome.UNKNOWN


def describe_exit_code(exit_code: int) -> str:
    """Human readable explanation of an exit code."""

    message = EXIT_CODE_MESSAGES.get(exit_code)
    if message is None:
        return f"Unknown exit code {exit_code}."
    return message


def classify_result(result: TaskResult) -> Outcome:
    """Classify a task result; a dispatch failure overrides the exit code."""

    if result.task_error is not None or result.exit_code is None:
        return Outcome.DISPATCH_ERROR
    return classify_exit_code(result.exit_code)


def is_error_outcome(outcome: Outcome) -> bool:
    return outcome not in _SUCCESS_OUTCOMES
