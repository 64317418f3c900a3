"""
Outbound email over SMTP.

Without SMTP_HOST the service runs in mock mode: messages are logged, not
sent, and a mock message id is returned so callers behave the same way.
"""
import logging
import smtplib
import uuid
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from toeic_api.core import config

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def is_configured() -> bool:
    return bool(config.SMTP_HOST)


def build_message(to_address: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
    message = EmailMessage()
    message["From"] = config.EMAIL_FROM
    message["To"] = to_address
    message["Subject"] = subject
    message["Message-ID"] = make_msgid(domain="chattoeic.com")
    message.set_content(text or "This message requires an HTML-capable email client.")
    message.add_alternative(html, subtype="html")
    return message


def send_email(to_address: str, subject: str, html: str, text: Optional[str] = None) -> EmailResult:
    """Send one message. SMTP failures are returned, not raised."""
    if not is_configured():
        message_id = f"mock-{uuid.uuid4().hex}"
        logger.info(f"SMTP not configured, email not sent: to={to_address}, subject={subject}, message_id={message_id}")
        return EmailResult(success=True, message_id=message_id)

    message = build_message(to_address, subject, html, text)
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT_SECONDS) as smtp:
            if config.SMTP_USE_TLS:
                smtp.starttls()
            if config.SMTP_USER and config.SMTP_PASS:
                smtp.login(config.SMTP_USER, config.SMTP_PASS)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Email send failed: to={to_address}, subject={subject}, error={e}")
        return EmailResult(success=False, error=str(e))

    logger.info(f"Email sent: to={to_address}, subject={subject}, message_id={message['Message-ID']}")
    return EmailResult(success=True, message_id=message["Message-ID"])
