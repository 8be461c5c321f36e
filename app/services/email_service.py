"""
Transactional email over SMTP

Verification links, password reset links and login codes. Without SMTP_HOST
the message is logged and skipped so local development works offline.
"""
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage

from app.core.config import settings

logger = logging.getLogger(__name__)


def send_email(*, to: str, subject: str, html_body: str) -> bool:
    """
    Send one HTML email

    Returns:
        True when handed to the SMTP server, False when skipped or failed
    """
    sender = settings.EMAILS_FROM_EMAIL or settings.SMTP_USER
    if not settings.SMTP_HOST or not sender:
        logger.warning("SMTP not configured, skipping email %r to %s", subject, to)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.EMAILS_FROM_NAME} <{sender}>" if settings.EMAILS_FROM_NAME else sender
    msg["To"] = to
    msg.set_content("Please open this email in an HTML capable client.")
    msg.add_alternative(html_body, subtype="html")

    try:
        if settings.SMTP_SSL:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT,
                                  context=ssl.create_default_context(), timeout=15) as server:
                if settings.SMTP_USER and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
                if settings.SMTP_TLS:
                    server.starttls(context=ssl.create_default_context())
                if settings.SMTP_USER and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Email %r to %s failed: %s", subject, to, e)
        return False
    logger.info("Email %r sent to %s", subject, to)
    return True


def _link_email(title: str, text: str, url: str) -> str:
    safe_url = html.escape(url, quote=True)
    return (
        f"<h2>{html.escape(title)}</h2>"
        f"<p>{html.escape(text)}</p>"
        f'<p><a href="{safe_url}">{safe_url}</a></p>'
        "<p>This link expires in one hour.</p>"
    )


def send_verification_email(*, email: str, token: str) -> bool:
    url = f"{settings.APP_URL.rstrip('/')}/auth/new-verification?token={token}"
    return send_email(
        to=email,
        subject=f"{settings.PROJECT_NAME} - Confirm your email",
        html_body=_link_email("Confirm your email", "Click the link below to confirm your email.", url),
    )


def send_password_reset_email(*, email: str, token: str) -> bool:
    url = f"{settings.APP_URL.rstrip('/')}/auth/new-password?token={token}"
    return send_email(
        to=email,
        subject=f"{settings.PROJECT_NAME} - Reset your password",
        html_body=_link_email("Reset your password", "Click the link below to choose a new password.", url),
    )


def send_otp_email(*, email: str, code: str) -> bool:
    return send_email(
        to=email,
        subject=f"{settings.PROJECT_NAME} - Your login code",
        html_body=f"<h2>Your login code</h2><p style=\"font-size:24px\"><b>{html.escape(code)}</b></p>"
                  "<p>The code expires in one hour.</p>",
    )
