"""Outbound email for account verification and password resets."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from string import Template
from typing import Protocol
from urllib.parse import quote

import structlog
from starlette.concurrency import run_in_threadpool

from ..core.config import Settings, get_settings

logger = structlog.get_logger(__name__)

VERIFICATION_SUBJECT = "Verify your email"
VERIFICATION_TEMPLATE = Template(
    "Hello $name,\n\n"
    "Please confirm your email address by opening the link below:\n\n"
    "$link\n\n"
    "The link expires in $ttl minutes.\n"
)

RESET_SUBJECT = "Reset your password"
RESET_TEMPLATE = Template(
    "Hello $name,\n\n"
    "A password reset was requested for your account. Use the link below to\n"
    "choose a new password:\n\n"
    "$link\n\n"
    "The link expires in $ttl minutes. If you did not ask for this, ignore\n"
    "this email.\n"
)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    """Delivery interface used by the auth service."""

    async def send(self, message: MailMessage) -> None: ...


class InMemoryMailer:
    """Keeps sent messages in an outbox instead of delivering them."""

    def __init__(self) -> None:
        self.outbox: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.info("mail_captured", to=message.to, subject=message.subject)

    def last_to(self, address: str) -> MailMessage | None:
        for message in reversed(self.outbox):
            if message.to == address:
                return message
        return None


class SmtpMailer:
    """Sends mail through an SMTP relay on a worker thread."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def send(self, message: MailMessage) -> None:
        await run_in_threadpool(self._deliver, message)
        logger.info("mail_sent", to=message.to, subject=message.subject)

    def _deliver(self, message: MailMessage) -> None:
        settings = self._settings
        email = EmailMessage()
        email["From"] = settings.mail_sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as client:
            if settings.smtp_use_tls:
                client.starttls()
            if settings.smtp_username and settings.smtp_password:
                client.login(settings.smtp_username, settings.smtp_password)
            client.send_message(email)


def build_mailer(settings: Settings | None = None) -> Mailer:
    settings = settings or get_settings()
    if settings.mail_backend == "smtp":
        return SmtpMailer(settings)
    return InMemoryMailer()


def _link(path: str, token: str) -> str:
    base = get_settings().frontend_url.rstrip("/")
    return f"{base}/{path}/{quote(token)}"


def verification_message(
    *, to: str, name: str | None, token: str, ttl_minutes: int
) -> MailMessage:
    body = VERIFICATION_TEMPLATE.substitute(
        name=name or to,
        link=_link("verify-email", token),
        ttl=ttl_minutes,
    )
    return MailMessage(to=to, subject=VERIFICATION_SUBJECT, body=body)


def reset_password_message(
    *, to: str, name: str | None, token: str, ttl_minutes: int
) -> MailMessage:
    body = RESET_TEMPLATE.substitute(
        name=name or to,
        link=_link("reset-password", token),
        ttl=ttl_minutes,
    )
    return MailMessage(to=to, subject=RESET_SUBJECT, body=body)
