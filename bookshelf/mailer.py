"""
Outgoing mail for Bookshelf.

Only one message is sent today: the password reset link.
"""

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape
from typing import Optional

from loguru import logger


@dataclass
class MailConfig:
    """SMTP settings. Without a host, mail is logged instead of sent."""

    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "no-reply@bookshelf.app"
    sender_name: str = "Bookshelf"
    timeout: float = 15.0

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


class Mailer:
    """
    Sends transactional mail over SMTP (STARTTLS).

    Sending is blocking; routes schedule it as a background task so the
    HTTP response does not wait on the mail server.
    """

    def __init__(self, config: Optional[MailConfig] = None):
        self.config = config or MailConfig()

    def build_reset_message(self, to_email: str, reset_link: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self.config.sender_name, self.config.sender))
        message["To"] = to_email
        message["Subject"] = "Reset your Bookshelf password"

        text = (
            "We received a request to reset your Bookshelf password.\n\n"
            f"Open this link to choose a new one:\n{reset_link}\n\n"
            "The link expires in one hour. If you did not ask for this, "
            "you can ignore this email.\n"
        )
        link = escape(reset_link, quote=True)
        html = (
            "<p>We received a request to reset your Bookshelf password.</p>"
            f'<p><a href="{link}">Choose a new password</a></p>'
            "<p>The link expires in one hour. If you did not ask for this, "
            "you can ignore this email.</p>"
        )

        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def send(self, message: MIMEMultipart) -> None:
        """Deliver a composed message. Raises smtplib/OSError on failure."""
        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.send_message(message)

    def send_password_reset_email(self, to_email: str, reset_link: str) -> bool:
        """
        Send the reset link.

        Failures are logged, never raised: the caller has already answered
        the request and the answer must not depend on delivery.

        Returns:
            True if the message was handed to the SMTP server.
        """
        if not self.config.is_configured:
            logger.info(f"SMTP not configured; reset link for {to_email}: {reset_link}")
            return False

        try:
            self.send(self.build_reset_message(to_email, reset_link))
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send reset email to {to_email}: {e}")
            return False

        logger.info(f"Sent password reset email to {to_email}")
        return True
