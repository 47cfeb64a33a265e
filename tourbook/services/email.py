"""Outbound notifications.

Handlers only build the message and hand it to a transport. With ``EMAIL_HOST``
set, mail goes out over SMTP; otherwise it is written to the log, which is what
local development wants.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from tourbook.core import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    to: str
    subject: str
    text: str


class Transport(Protocol):
    def send(self, message: Message) -> None: ...


class SmtpTransport:
    def __init__(self, host: str, port: int, username: str, password: str, use_tls: bool) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def send(self, message: Message) -> None:
        email = EmailMessage()
        email["From"] = config.EMAIL_FROM
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(email)


class LogTransport:
    def send(self, message: Message) -> None:
        logger.info("Email to %s: %s\n%s", message.to, message.subject, message.text)


class Mailer:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def _send(self, to: str, subject: str, text: str) -> None:
        self.transport.send(Message(to=to, subject=subject, text=text))

    def send_welcome(self, name: str, email: str, url: str) -> None:
        first_name = name.split(" ")[0]
        self._send(
            email,
            "Welcome to the Tourbook family!",
            f"Hi {first_name},\nWelcome aboard! Upload a photo to your account at {url}.",
        )

    def send_password_reset(self, name: str, email: str, url: str) -> None:
        first_name = name.split(" ")[0]
        self._send(
            email,
            f"Your password reset token (valid for only {config.PASSWORD_RESET_EXPIRES_MINUTES} minutes)",
            (
                f"Hi {first_name},\nForgot your password? Submit a PATCH request with your new "
                f"password and passwordConfirm to: {url}.\n"
                "If you didn't forget your password, please ignore this email!"
            ),
        )


def get_mailer() -> Mailer:
    if config.EMAIL_HOST:
        return Mailer(
            SmtpTransport(
                config.EMAIL_HOST,
                config.EMAIL_PORT,
                config.EMAIL_USERNAME,
                config.EMAIL_PASSWORD,
                config.EMAIL_USE_TLS,
            )
        )
    return Mailer(LogTransport())
