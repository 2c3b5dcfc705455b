"""SMTP delivery of notices and summaries."""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

logger = logging.getLogger("pwreminder.mailer")

HIGH_PRIORITY = "high"
NORMAL_PRIORITY = "normal"

_PRIORITY_HEADERS = {
    HIGH_PRIORITY: ("1 (Highest)", "High"),
    NORMAL_PRIORITY: ("3 (Normal)", "Normal"),
}


class DeliveryError(RuntimeError):
    """Raised when the mail server does not accept a message."""


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    sender: str
    subject: str
    body: str
    priority: str = HIGH_PRIORITY
    content_type: str = "html"


class Mailer(Protocol):
    def send(self, message: OutboundMessage) -> None:
        ...


def build_mime(message: OutboundMessage) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = message.sender
    msg["To"] = message.to
    msg["Subject"] = message.subject

    x_priority, importance = _PRIORITY_HEADERS.get(message.priority, _PRIORITY_HEADERS[NORMAL_PRIORITY])
    msg["X-Priority"] = x_priority
    msg["Importance"] = importance

    msg.attach(MIMEText(message.body, message.content_type, "utf-8"))
    return msg


class SmtpMailer:
    """Send each message over its own SMTP session."""

    def __init__(
        self,
        server: str,
        port: int = 25,
        *,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def send(self, message: OutboundMessage) -> None:
        msg = build_mime(message)
        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"Failed to deliver to {message.to} via {self.server}:{self.port}: {exc}") from exc
        logger.debug("Delivered %r to %s", message.subject, message.to)


__all__ = [
    "DeliveryError",
    "HIGH_PRIORITY",
    "Mailer",
    "NORMAL_PRIORITY",
    "OutboundMessage",
    "SmtpMailer",
    "build_mime",
]
