"""Loading and validation of the JSON job manifest."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from robocopy_runner.runner.models import (
    MailPolicy,
    Manifest,
    NotificationPolicy,
    RobocopyArguments,
    Task,
)

_POLICY_ALIASES: dict[str, NotificationPolicy] = {
    "onlyonerrororcopies": NotificationPolicy.ONLY_ON_ERROR_OR_ACTION,
}


class ManifestReadError(RuntimeError):
    """Manifest file could not be read or decoded."""


class ManifestValidationError(ValueError):
    """Manifest content violates a structural rule."""

    def __init__(self, message: str, *, property_path: str) -> None:
        super().__init__(message)
        self.property_path = property_path


def load_manifest(path: Path) -> Manifest:
    """Read, decode and validate a manifest file."""

    try:
        text = path.read_text("utf-8-sig")
    except OSError as error:
        raise ManifestReadError(f"Cannot read manifest file '{path}': {error}") from error
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as error:
        raise ManifestReadError(f"Manifest file '{path}' is not valid JSON: {error}") from error
    return parse_manifest(raw)


def parse_manifest(raw: Any) -> Manifest:
    """Validate decoded manifest data, failing on the first violation."""

    if not isinstance(raw, dict):
        raise ManifestValidationError("Manifest must be a JSON object.", property_path="")

    for name in ("MaxConcurrentJobs", "Tasks", "SendMail"):
        if name not in raw or raw[name] is None:
            raise ManifestValidationError(
                f"Property '{name}' not found.",
                property_path=name,
            )

    raw_tasks = raw["Tasks"]
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise ManifestValidationError(
            "Property 'Tasks' must be a non-empty list.",
            property_path="Tasks",
        )

    send_mail = _parse_send_mail(raw["SendMail"])

    tasks = tuple(_parse_task(index, item) for index, item in enumerate(raw_tasks))
    for task in tasks:
        _check_path_mode(task)

    return Manifest(
        max_concurrent_jobs=_parse_positive_int(
            raw["MaxConcurrentJobs"],
            property_path="MaxConcurrentJobs",
        ),
        send_mail=send_mail,
        tasks=tasks,
    )


def is_unc_path(path: str) -> bool:
    """Return True for network paths such as ``\\\\server\\share``."""

    stripped = path.strip()
    if stripped.startswith(("\\\\?\\", "\\\\.\\")):
        return stripped[4:].upper().startswith("UNC\\")
    return stripped.startswith(("\\\\", "//")) and len(stripped) > 2


def parse_notification_policy(value: Any) -> NotificationPolicy:
    """Resolve a ``SendMail.When`` value, accepting legacy aliases."""

    if not isinstance(value, str):
        raise ManifestValidationError(
            f"Property 'SendMail.When' must be a string, got {type(value).__name__}.",
            property_path="SendMail.When",
        )
    normalized = value.strip().lower()
    for policy in NotificationPolicy:
        if policy.value.lower() == normalized:
            return policy
    alias = _POLICY_ALIASES.get(normalized)
    if alias is not None:
        return alias
    allowed = ", ".join(policy.value for policy in NotificationPolicy)
    raise ManifestValidationError(
        f"Property 'SendMail.When' with value '{value}' is not valid. "
        f"Accepted values are: {allowed}.",
        property_path="SendMail.When",
    )


def _parse_send_mail(raw: Any) -> MailPolicy:
    if not isinstance(raw, dict):
        raise ManifestValidationError(
            "Property 'SendMail' must be an object.",
            property_path="SendMail",
        )
    if "When" not in raw:
        raise ManifestValidationError(
            "Property 'SendMail.When' not found.",
            property_path="SendMail.When",
        )
    when = parse_notification_policy(raw["When"])

    to = _string_list(raw.get("To"), property_path="SendMail.To")
    if not to and when != NotificationPolicy.NEVER:
        raise ManifestValidationError(
            "Property 'SendMail.To' not found. It is mandatory unless "
            f"'SendMail.When' is '{NotificationPolicy.NEVER.value}'.",
            property_path="SendMail.To",
        )

    attach = raw.get("AttachLogFiles", False)
    if not isinstance(attach, bool):
        raise ManifestValidationError(
            "Property 'SendMail.AttachLogFiles' must be a boolean.",
            property_path="SendMail.AttachLogFiles",
        )

    return MailPolicy(
        to=to,
        when=when,
        subject=_optional_string(raw.get("Subject"), property_path="SendMail.Subject"),
        header=_optional_string(raw.get("Header"), property_path="SendMail.Header"),
        attach_log_files=attach,
    )


def _parse_task(index: int, raw: Any) -> Task:
    if not isinstance(raw, dict):
        raise ManifestValidationError(
            f"Tasks[{index}] must be an object.",
            property_path="Tasks",
        )

    robocopy = raw.get("Robocopy")
    if not isinstance(robocopy, dict):
        raise ManifestValidationError(
            f"Property 'Tasks.Robocopy' not found for task {index + 1}.",
            property_path="Tasks.Robocopy",
        )

    input_file = _optional_string(
        robocopy.get("InputFile"),
        property_path="Tasks.Robocopy.InputFile",
    )
    raw_arguments = robocopy.get("Arguments")
    has_arguments = raw_arguments is not None and raw_arguments != {}

    if input_file and has_arguments:
        raise ManifestValidationError(
            "Property 'Tasks.Robocopy.Arguments' and 'Tasks.Robocopy.InputFile' "
            f"cannot be combined in task {index + 1}. Use either 'Arguments' or 'InputFile'.",
            property_path="Tasks.Robocopy",
        )
    if not input_file and not has_arguments:
        raise ManifestValidationError(
            "Property 'Tasks.Robocopy.Arguments' or 'Tasks.Robocopy.InputFile' "
            f"not found in task {index + 1}. One of them is mandatory.",
            property_path="Tasks.Robocopy",
        )

    arguments = _parse_arguments(index, raw_arguments) if has_arguments else None

    return Task(
        index=index,
        name=_optional_string(raw.get("Name"), property_path="Tasks.Name"),
        computer_name=_optional_string(
            raw.get("ComputerName"),
            property_path="Tasks.ComputerName",
        ),
        arguments=arguments,
        input_file=input_file,
    )


def _parse_arguments(index: int, raw: Any) -> RobocopyArguments:
    if not isinstance(raw, dict):
        raise ManifestValidationError(
            f"Property 'Tasks.Robocopy.Arguments' must be an object in task {index + 1}.",
            property_path="Tasks.Robocopy.Arguments",
        )

    values: dict[str, str] = {}
    for name in ("Source", "Destination", "Switches"):
        value = _optional_string(
            raw.get(name),
            property_path=f"Tasks.Robocopy.Arguments.{name}",
        )
        if not value:
            raise ManifestValidationError(
                f"Property 'Tasks.Robocopy.Arguments.{name}' not found in task {index + 1}.",
                property_path=f"Tasks.Robocopy.Arguments.{name}",
            )
        values[name] = value

    return RobocopyArguments(
        source=values["Source"],
        destination=values["Destination"],
        switches=values["Switches"],
        file=_optional_string(raw.get("File"), property_path="Tasks.Robocopy.Arguments.File")
        or "",
    )


def _check_path_mode(task: Task) -> None:
    if task.arguments is None:
        return

    for name, path in (
        ("Source", task.arguments.source),
        ("Destination", task.arguments.destination),
    ):
        property_path = f"Tasks.Robocopy.Arguments.{name}"
        if task.computer_name:
            if is_unc_path(path):
                raise ManifestValidationError(
                    f"Property '{property_path}' with value '{path}' is a UNC path. "
                    "UNC paths are not supported when 'ComputerName' is set, "
                    "to avoid the double hop issue. Use a local path on "
                    f"'{task.computer_name}' instead.",
                    property_path=property_path,
                )
        elif not is_unc_path(path):
            raise ManifestValidationError(
                f"Property '{property_path}' with value '{path}' is not a UNC path. "
                "Only UNC paths are supported when 'ComputerName' is not set.",
                property_path=property_path,
            )


def _parse_positive_int(value: Any, *, property_path: str) -> int:
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        parsed = None

    if parsed is None or parsed <= 0:
        raise ManifestValidationError(
            f"Property '{property_path}' with value '{value}' must be a positive integer.",
            property_path=property_path,
        )
    return parsed


def _optional_string(value: Any, *, property_path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ManifestValidationError(
            f"Property '{property_path}' must be a string.",
            property_path=property_path,
        )
    stripped = value.strip()
    return stripped or None


def _string_list(value: Any, *, property_path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
        raise ManifestValidationError(
            f"Property '{property_path}' must be a string or a list of strings.",
            property_path=property_path,
        )
    return tuple(item.strip() for item in items if item.strip())
