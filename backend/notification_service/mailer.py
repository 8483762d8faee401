"""
Email transport and the message templates sent to participants.

- Dev: logs instead of sending
- SMTP: delivers through the configured mail server
"""

import logging
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from dotenv import load_dotenv

from backend.database.models import Event
from backend.errors import NotificationError

load_dotenv()

logger = logging.getLogger(__name__)

EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "dev")
EMAIL_USER = os.getenv("EMAIL_USER")
EMAIL_PASS = os.getenv("EMAIL_PASS")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 465))
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", 10))


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str


class EmailTransport:
    """
    Sends a single notification.

    Any failure is raised as ``NotificationError``; deciding what to do
    about it is the dispatcher's job.
    """

    def __init__(
        self,
        provider: str = EMAIL_PROVIDER,
        sender: Optional[str] = EMAIL_USER,
        password: Optional[str] = EMAIL_PASS,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        timeout: float = SMTP_TIMEOUT,
    ) -> None:
        self.provider = provider
        self.sender = sender
        self.password = password
        self.host = host
        self.port = port
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        if self.provider == "dev":
            logger.info(f"[DEV EMAIL] to={notification.recipient} subject={notification.subject}")
            return
        if self.provider != "smtp":
            raise NotificationError(f"Email provider '{self.provider}' not implemented", notification.recipient)

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = notification.recipient
        message["Subject"] = notification.subject
        message.set_content(notification.body)

        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                if self.sender and self.password:
                    smtp.login(self.sender, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email: {e}", notification.recipient) from e


# --- MESSAGE TEMPLATES ---
def welcome_email(email: str, name: str, role: str) -> Notification:
    return Notification(
        email,
        "Welcome to Virtual Event Platform",
        f"Hi {name}, your account has been successfully created as an {role}!",
    )


def registration_confirmation(email: str, event: Event) -> Notification:
    return Notification(
        email,
        "Event Registration Confirmation",
        f'You have successfully registered for "{event.title}"\n'
        f"Date: {event.date.isoformat()}\n"
        f"Time: {event.time}\n"
        "Location: Online",
    )


def update_notice(email: str, event: Event) -> Notification:
    return Notification(
        email,
        "Event Update Notification",
        f'The event "{event.title}" has been updated.\n'
        f"New date: {event.date.isoformat()}\n"
        f"New time: {event.time}",
    )


def cancellation_notice(email: str, event: Event) -> Notification:
    return Notification(
        email,
        "Event Cancellation Notice",
        f'The event "{event.title}" scheduled for {event.date.isoformat()} at {event.time} has been cancelled.',
    )
