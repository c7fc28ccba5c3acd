"""Notification senders for overdue loans.

The scanner only needs something with a send() method returning whether the
notice went out. SMTPNotifier emails the member; ConsoleNotifier prints the
notice instead, for setups without a mail server.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from rich.console import Console
from rich.markup import escape

from ..config import Config

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything able to deliver one overdue notice."""

    def send(self, address: str, item_name: str, member_name: str, due_date_text: str) -> bool:
        ...


def render_overdue_text(item_name: str, member_name: str, due_date_text: str, org_name: str) -> str:
    """Plain-text body of an overdue notice."""
    return (
        f"Dear {member_name},\n\n"
        f"This is a reminder that the following item was due for return on {due_date_text}:\n\n"
        f"  Item: {item_name}\n"
        f"  Due date: {due_date_text}\n\n"
        f"Please return the item as soon as possible, or get in touch if you need an extension.\n\n"
        f"Thank you,\n{org_name}\n"
    )


class SMTPNotifier:
    """Sends overdue notices by email."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        org_name: str = "the equipment store",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.org_name = org_name
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> "SMTPNotifier":
        """Build a notifier from SMTP_* settings."""
        if not config.has_smtp_config():
            raise ValueError("SMTP is not configured (need SMTP_HOST, SMTP_USER, SMTP_PASS)")
        return cls(
            host=config.smtp_host,
            port=config.smtp_port,
            user=config.smtp_user,
            password=config.smtp_pass,
            sender=config.smtp_from,
            org_name=config.org_name,
        )

    def build_message(
        self, address: str, item_name: str, member_name: str, due_date_text: str
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"Overdue Item: {item_name}"
        message["From"] = self.sender or ""
        message["To"] = address
        message.set_content(render_overdue_text(item_name, member_name, due_date_text, self.org_name))
        return message

    def _connect(self) -> smtplib.SMTP:
        # Port 465 is implicit TLS; anything else upgrades with STARTTLS when offered
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        return smtp

    def send(self, address: str, item_name: str, member_name: str, due_date_text: str) -> bool:
        """Send one notice. Returns False (and logs) if delivery fails."""
        message = self.build_message(address, item_name, member_name, due_date_text)
        try:
            with self._connect() as smtp:
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Could not send overdue notice to %s: %s", address, e)
            return False

        logger.info("Sent overdue notice to %s for %s", address, item_name)
        return True


class ConsoleNotifier:
    """Prints overdue notices to the terminal."""

    def __init__(self, console: Optional[Console] = None, org_name: str = "the equipment store"):
        self.console = console or Console()
        self.org_name = org_name

    def send(self, address: str, item_name: str, member_name: str, due_date_text: str) -> bool:
        self.console.print(f"[bold]To:[/bold] {escape(address)}")
        self.console.print(f"[bold]Subject:[/bold] Overdue Item: {escape(item_name)}")
        self.console.print(
            render_overdue_text(item_name, member_name, due_date_text, self.org_name), markup=False
        )
        return True
