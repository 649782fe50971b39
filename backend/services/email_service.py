"""
Outbound email for account actions.

Sending happens in a FastAPI background task after the response is written, so an SMTP
outage never changes what the client sees. When SMTP credentials are not configured the
message is skipped and logged.
"""

import logging
from email.message import EmailMessage

import aiosmtplib

from backend.core import config

logger = logging.getLogger(__name__)


def build_reset_url(raw_token: str) -> str:
    return f"{config.FRONTEND_URL.rstrip('/')}/reset-password/{raw_token}"


def is_configured() -> bool:
    return bool(config.SMTP_HOST and config.SMTP_USER and config.SMTP_PASSWORD)


async def send_email(to_email: str, subject: str, text_content: str) -> bool:
    """Send a plain-text email. Returns True on success, False otherwise."""
    if not is_configured():
        logger.warning('Email service not configured, skipping email to %s', to_email)
        return False

    message = EmailMessage()
    message['From'] = f'{config.EMAIL_FROM_NAME} <{config.EMAIL_FROM}>'
    message['To'] = to_email
    message['Subject'] = subject
    message.set_content(text_content)

    try:
        await aiosmtplib.send(
            message,
            hostname=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            start_tls=config.SMTP_USE_TLS,
        )
    except aiosmtplib.SMTPException:
        logger.exception('Failed to send email to %s', to_email)
        return False

    logger.info('Sent "%s" email to %s', subject, to_email)
    return True


async def send_password_reset_email(to_email: str, reset_url: str, role: str) -> bool:
    text = (
        f'You are receiving this email because you (or someone else) requested a password reset '
        f'for your {role} account.\n\n'
        f'Open the following link to choose a new password:\n\n{reset_url}\n\n'
        f'This link expires in {config.RESET_TOKEN_EXPIRES_MINUTES} minutes.\n\n'
        'If you did not request this, ignore this email and your password will remain unchanged.'
    )
    return await send_email(to_email, 'Password Reset Request', text)
