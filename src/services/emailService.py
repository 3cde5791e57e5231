"""
Transactional email via the Resend API.

Template builders return ``(subject, html)``; ``send_email`` delivers one
message.  The Resend SDK is synchronous, so sends run in a small thread
pool with a timeout.  Without ``RESEND_API_KEY`` the send is skipped and
logged, which is the normal local-development mode.
"""

from __future__ import annotations

import asyncio
import html
import logging
from concurrent.futures import ThreadPoolExecutor

import resend

from src.core.config import settings

logger = logging.getLogger(__name__)

_email_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="email_sender")

BRAND = "Campus Gigs"

_WRAPPER_STYLE = "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;"
_BUTTON_STYLE = (
    "display: inline-block; background-color: #4F46E5; color: white; "
    "padding: 10px 20px; text-decoration: none; border-radius: 5px;"
)
_QUOTE_STYLE = "border-left: 4px solid #E5E7EB; padding-left: 10px; color: #4B5563;"


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

async def send_email(to: str, subject: str, html_body: str) -> bool:
    """Send one email.  Returns True on success (or when skipped in dev mode)."""
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set - email not sent: to=%s subject=%r", to, subject)
        return True

    resend.api_key = settings.resend_api_key

    def _send() -> None:
        resend.Emails.send(
            {
                "from": settings.email_from,
                "to": [to],
                "subject": subject,
                "html": html_body,
            }
        )

    loop = asyncio.get_running_loop()
    try:
        await asyncio.wait_for(
            loop.run_in_executor(_email_executor, _send),
            timeout=settings.email_send_timeout,
        )
    except asyncio.TimeoutError:
        logger.error("Email send timed out: to=%s timeout=%ss", to, settings.email_send_timeout)
        return False
    except Exception:
        logger.exception("Failed to send email: to=%s subject=%r", to, subject)
        return False

    logger.info("Email sent: to=%s subject=%r", to, subject)
    return True


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _link(path: str, label: str) -> str:
    url = f"{settings.client_url.rstrip('/')}{path}"
    return f'<a href="{url}" style="{_BUTTON_STYLE}">{label}</a>'


def welcome_email(name: str) -> tuple[str, str]:
    body = f"""
    <div style="{_WRAPPER_STYLE}">
      <h2 style="color: #4F46E5;">Welcome, {html.escape(name)}!</h2>
      <p>Thanks for joining {BRAND}. We're excited to have you on board.</p>
      <p>Start exploring jobs or post one today!</p>
      <p>Best regards,<br>The {BRAND} Team</p>
    </div>"""
    return f"Welcome to {BRAND}!", body


def job_accepted_email(job_title: str, worker_name: str) -> tuple[str, str]:
    body = f"""
    <div style="{_WRAPPER_STYLE}">
      <h2 style="color: #10B981;">Good News!</h2>
      <p>Your job "<strong>{html.escape(job_title)}</strong>" has been accepted by
      <strong>{html.escape(worker_name)}</strong>.</p>
      <p>You can now chat with them to coordinate the details.</p>
      {_link("/dashboard", "Go to Dashboard")}
    </div>"""
    return "Your Job Has Been Accepted!", body


def job_completed_email(job_title: str, worker_name: str) -> tuple[str, str]:
    body = f"""
    <div style="{_WRAPPER_STYLE}">
      <h2 style="color: #4F46E5;">Job Completed</h2>
      <p><strong>{html.escape(worker_name)}</strong> has marked
      "<strong>{html.escape(job_title)}</strong>" as completed.</p>
      <p>Please review their work and leave a rating.</p>
      {_link("/dashboard", "Review Now")}
    </div>"""
    return "Job Completed!", body


def new_message_email(sender_name: str, preview: str) -> tuple[str, str]:
    body = f"""
    <div style="{_WRAPPER_STYLE}">
      <h3 style="color: #4F46E5;">New Message</h3>
      <p><strong>{html.escape(sender_name)}</strong> sent you a message:</p>
      <blockquote style="{_QUOTE_STYLE}">{html.escape(preview)}</blockquote>
      {_link("/dashboard/chat", "Reply Now")}
    </div>"""
    return f"New Message from {sender_name}", body


def otp_email(otp: str) -> tuple[str, str]:
    body = f"""
    <div style="{_WRAPPER_STYLE}">
      <h2 style="color: #4F46E5;">Verify your email</h2>
      <p>Your OTP is: <strong>{html.escape(otp)}</strong></p>
      <p>This OTP is valid for {settings.otp_expire_minutes} minutes.</p>
    </div>"""
    return "Verify your email", body
