"""Email dispatch for out-of-band action links."""
from __future__ import annotations

import logging
import smtplib
from datetime import timedelta
from email.message import EmailMessage
from typing import Optional

from services.exceptions import EmailDispatchError

logger = logging.getLogger(__name__)

VERIFY_EMAIL_SUBJECT = "Verify your account"
RESET_PASSWORD_SUBJECT = "Reset your password"


def describe_duration(ttl: timedelta) -> str:
    """Human wording for a link lifetime, e.g. "24 hours" or "30 minutes"."""
    minutes = max(int(ttl.total_seconds() // 60), 1)
    if minutes % 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours = minutes // 60
    return f"{hours} hour{'s' if hours != 1 else ''}"


def verification_message(link: str, ttl: timedelta = timedelta(hours=24)) -> tuple[str, str]:
    """Return (subject, plain text body) for an email verification link."""
    body = (
        "Welcome! Please verify your email address by opening this link:\n\n"
        f"{link}\n\n"
        f"This link will expire in {describe_duration(ttl)}."
    )
    return VERIFY_EMAIL_SUBJECT, body


def password_reset_message(link: str, ttl: timedelta = timedelta(hours=1)) -> tuple[str, str]:
    """Return (subject, plain text body) for a password reset link."""
    body = (
        "You requested to reset your password. Open this link to set a new one:\n\n"
        f"{link}\n\n"
        "If you didn't request this change, you can ignore this email.\n"
        f"This link will expire in {describe_duration(ttl)}."
    )
    return RESET_PASSWORD_SUBJECT, body


class EmailDispatcher:
    """Interface for the mail-sending collaborator."""

    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class SMTPEmailDispatcher(EmailDispatcher):
    """Sends plain text mail through an SMTP relay, one connection per message."""

    def __init__(self, host: str, port: int = 587, sender: str = "",
                 username: Optional[str] = None, password: Optional[str] = None,
                 use_tls: bool = True, timeout: float = 10.0) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_config(cls, config) -> "SMTPEmailDispatcher":
        return cls(
            host=config["SMTP_HOST"],
            port=config["SMTP_PORT"],
            sender=config["MAIL_FROM"],
            username=config.get("SMTP_USER"),
            password=config.get("SMTP_PASSWORD"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("SMTP_TIMEOUT_SECONDS", 10.0),
        )

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send(self, to, subject, body):
        message = self._build_message(to, subject, body)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as conn:
                if self._use_tls:
                    conn.starttls()
                if self._username:
                    conn.login(self._username, self._password or "")
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, to, exc)
            raise EmailDispatchError(str(exc)) from exc
        logger.info("Sent '%s' to %s", subject, to)
