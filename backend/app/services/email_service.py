"""SMTP delivery for check-in reminders.

If SMTP_HOST is not configured, emails are skipped and reported as not sent.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.config import settings

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.SMTP_HOST)


def _send_sync(to: str, subject: str, body_html: str, body_text: str) -> bool:
    """Send one message over SMTP (runs in a worker thread)."""
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            if settings.SMTP_TLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_FROM, [to], msg.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email to %s", to)
        return False
    logger.info("Email sent to %s: %s", to, subject)
    return True


async def send_email(to: str, subject: str, body_html: str, body_text: str = "") -> bool:
    """Send an email without blocking the event loop. False if SMTP is not configured."""
    if not is_configured():
        return False
    return await asyncio.to_thread(_send_sync, to, subject, body_html, body_text or body_html)


def render_check_in_email(title: str, message: str, link: str | None = None) -> tuple[str, str]:
    """Return (html, text) bodies for a check-in message."""
    link_html = ""
    if link:
        link_html = (
            f"<a href='{escape(link, quote=True)}' style='"
            "display: inline-block; margin-top: 12px; "
            "padding: 8px 16px; background: #2e7d32; "
            "color: white; text-decoration: none; "
            "border-radius: 4px;'>Open check-in</a>"
        )

    wrapper = "font-family: sans-serif; max-width: 600px; margin: 0 auto"
    header_s = "background: #1b5e20; padding: 16px 24px"
    body_s = "padding: 24px; border: 1px solid #e0e0e0"
    body_html = (
        f'<div style="{wrapper}">'
        f'<div style="{header_s}">'
        '<h2 style="color:#c8e6c9;margin:0">CareCheck</h2></div>'
        f'<div style="{body_s}">'
        f'<h3 style="margin:0 0 8px;color:#333">{escape(title)}</h3>'
        f'<p style="color:#555">{escape(message)}</p>'
        f"{link_html}</div></div>"
    )

    body_text = f"{title}\n\n{message}"
    if link:
        body_text += f"\n\n{link}"
    return body_html, body_text
