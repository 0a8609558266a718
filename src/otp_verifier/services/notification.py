"""Notification sinks — deliver passcodes to their owners."""

from __future__ import annotations

import html
import logging
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

from otp_verifier.config import Settings

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Anything that can get a passcode in front of the identity's owner."""

    async def send(
        self, identity: str, code: str, ttl_minutes: int, name: str | None = None
    ) -> bool:
        """Deliver *code* to *identity*; return ``True`` on success."""


def render_plain_text(name: str | None, code: str, ttl_minutes: int, app_name: str) -> str:
    return (
        f"Hello {name or 'there'},\n\n"
        f"Your verification code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n\n"
        "If you did not request this code, you can safely ignore this email.\n\n"
        "Best regards,\n"
        f"The {app_name} Team"
    )


def render_html(name: str | None, code: str, ttl_minutes: int, app_name: str) -> str:
    greeting = html.escape(name or "there")
    app_name = html.escape(app_name)
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Email Verification Code</title></head>
<body>
  <div>
    <h1>Email Verification</h1>
    <p>Hello {greeting},</p>
    <p>Your verification code is: <strong>{code}</strong></p>
    <p>This code will expire in {ttl_minutes} minutes.</p>
    <p>Best regards,<br>The {app_name} Team</p>
  </div>
</body>
</html>
"""


class EmailNotificationSink:
    """Sends passcode emails using the configured SMTP server."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def send(
        self, identity: str, code: str, ttl_minutes: int, name: str | None = None
    ) -> bool:
        """Send the passcode email.

        Parameters
        ----------
        identity:
            Recipient email address.
        code:
            The passcode to deliver.
        ttl_minutes:
            Validity window quoted in the message body.
        name:
            Optional display name used in the greeting.
        """
        app_name = self._settings.app_name

        msg = EmailMessage()
        msg["Subject"] = f"Your Verification Code: {code}"
        msg["From"] = self._settings.email_from
        msg["To"] = identity
        msg.set_content(render_plain_text(name, code, ttl_minutes, app_name))
        msg.add_alternative(render_html(name, code, ttl_minutes, app_name), subtype="html")

        logger.info("Sending passcode email to %s", identity)
        try:
            await aiosmtplib.send(
                msg,
                hostname=self._settings.smtp_host,
                port=self._settings.smtp_port,
                username=self._settings.smtp_username or None,
                password=self._settings.smtp_password or None,
                start_tls=self._settings.smtp_start_tls,
            )
        except aiosmtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed, check credentials: %s", exc)
            return False
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send passcode email to %s: %s", identity, exc)
            return False

        logger.info("Passcode email sent to %s", identity)
        return True


class LoggingNotificationSink:
    """Development sink — writes the passcode to the log instead of emailing it.

    Codes only reach the log when *reveal_codes* is set (debug deployments).
    Otherwise nothing is delivered and ``send`` reports failure, so callers
    see ``DeliveryFailed`` instead of a code that went nowhere.
    """

    def __init__(self, reveal_codes: bool = False) -> None:
        self.reveal_codes = reveal_codes

    async def send(
        self, identity: str, code: str, ttl_minutes: int, name: str | None = None
    ) -> bool:
        if not self.reveal_codes:
            logger.error(
                "Email delivery disabled and debug off, passcode for %s not delivered",
                identity,
            )
            return False
        logger.warning(
            "📧 Passcode for %s (%s): %s  (expires in %d minutes, email delivery disabled)",
            identity,
            name or "-",
            code,
            ttl_minutes,
        )
        return True


def build_notification_sink(settings: Settings) -> NotificationSink:
    """Pick the sink matching *settings*; called once at startup."""
    if settings.email_notifications_enabled:
        logger.info("Email notifications enabled via %s:%s", settings.smtp_host, settings.smtp_port)
        return EmailNotificationSink(settings)
    if settings.debug:
        logger.warning("Email notifications are disabled, passcodes will be logged (debug)")
    else:
        logger.error("Email notifications are disabled, passcodes cannot be delivered")
    return LoggingNotificationSink(reveal_codes=settings.debug)
