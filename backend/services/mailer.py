import logging
import smtplib
import uuid
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from pydantic import BaseModel

import config

logger = logging.getLogger(__name__)


class EmailResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def send_email(recipients: list[str], subject: str, html_body: str) -> EmailResult:
    """Send an HTML email. Logs instead of sending while the email service is disabled."""
    if not recipients:
        return EmailResult(success=False, error="No recipients")

    if not config.EMAIL_SERVICE_ENABLED:
        logger.info("Mock email to %s: %s", ", ".join(recipients), subject)
        return EmailResult(success=True, message_id=f"mock-{uuid.uuid4().hex[:12]}")

    if not config.SMTP_HOST:
        logger.warning("Email service enabled but SMTP_HOST is not set, email not sent: %s", subject)
        return EmailResult(success=False, error="Email service not configured")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = config.EMAIL_FROM
    message["To"] = ", ".join(recipients)
    message["Message-ID"] = make_msgid()
    message.set_content(f"{subject}\n\nView this message in an HTML-capable email client.")
    message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.EMAIL_SEND_TIMEOUT_SECONDS) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            if config.SMTP_USER and config.SMTP_PASS:
                server.login(config.SMTP_USER, config.SMTP_PASS)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email %r: %s", subject, e)
        return EmailResult(success=False, error=str(e))

    logger.info("Email sent to %s: %s", ", ".join(recipients), subject)
    return EmailResult(success=True, message_id=message["Message-ID"])
