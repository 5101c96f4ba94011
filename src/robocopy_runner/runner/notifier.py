"""Mail delivery for run reports."""

from __future__ import annotations

import logging
import mimetypes
import smtplib
from datetime import UTC, datetime
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from robocopy_runner.runner.models import MailMessage, MailPriority

logger = logging.getLogger(__name__)

_PRIORITY_HEADERS = {
    MailPriority.HIGH: ("1", "High"),
    MailPriority.NORMAL: ("3", "Normal"),
}


class NotificationError(RuntimeError):
    """Mail could not be delivered."""


class Mailer(Protocol):
    """Delivers assembled report e-mails."""

    def send(self, message: MailMessage) -> None:
        """Send ``message`` or raise ``NotificationError``."""


def build_email(message: MailMessage, *, sender: str) -> EmailMessage:
    """Convert a mail message into a MIME e-mail with attachments."""

    email = EmailMessage()
    email["From"] = sender
    email["To"] = ", ".join(message.to)
    if message.cc:
        email["Cc"] = ", ".join(message.cc)
    email["Subject"] = message.subject
    email["Date"] = formatdate(localtime=True)
    email["Message-ID"] = make_msgid()
    x_priority, importance = _PRIORITY_HEADERS[message.priority]
    email["X-Priority"] = x_priority
    email["Importance"] = importance
    email.set_content("This report requires an HTML capable mail client.")
    email.add_alternative(message.html_body, subtype="html")

    for path in message.attachments:
        content_type, _ = mimetypes.guess_type(path.name)
        maintype, subtype = (content_type or "text/plain").split("/", 1)
        email.add_attachment(
            path.read_bytes(),
            maintype=maintype,
            subtype=subtype,
            filename=path.name,
        )
    return email


class SmtpMailer:
    """Sends e-mails through an SMTP relay."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        host: str,
        port: int = 25,
        sender: str,
        starttls: bool = False,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.starttls = starttls
        self.username = username
        self.password = password
        self.timeout_seconds = timeout_seconds

    def send(self, message: MailMessage) -> None:
        try:
            email = build_email(message, sender=self.sender)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(email)
        except (OSError, smtplib.SMTPException) as error:
            raise NotificationError(
                f"Failed sending e-mail '{message.subject}' via {self.host}:{self.port}: {error}",
            ) from error
        logger.info("E-mail '%s' sent to %s", message.subject, ", ".join(message.to))


class OutboxMailer:
    """Writes e-mails as ``.eml`` files when no SMTP relay is configured."""

    def __init__(self, outbox_dir: Path, *, sender: str) -> None:
        self.outbox_dir = outbox_dir
        self.sender = sender

    def send(self, message: MailMessage) -> None:
        stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S")
        path = self.outbox_dir / f"{stamp}-{uuid4().hex[:8]}.eml"
        try:
            email = build_email(message, sender=self.sender)
            self.outbox_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(email.as_bytes())
        except OSError as error:
            raise NotificationError(
                f"Failed writing e-mail '{message.subject}' to {path}: {error}",
            ) from error
        logger.info("E-mail '%s' written to %s", message.subject, path)
