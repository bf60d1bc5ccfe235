"""
services/notification/emails.py
Email templates and Resend delivery.

deliver_email() is synchronous (the Resend SDK is); route handlers that
must report the outcome call send_now(), everything else goes through the
Celery task in tasks/notification_tasks.py.
"""

import html
import logging
from dataclasses import dataclass
from typing import Optional

import resend
from starlette.concurrency import run_in_threadpool

from config.settings import settings
from shared.utils.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


# ── Delivery ──────────────────────────────────────────────────

def deliver_email(message: EmailMessage) -> bool:
    """
    Send one email via Resend.
    Returns False (and logs) when no API key is configured.
    Raises EmailDeliveryError when the provider rejects the message.
    """
    if not settings.email_configured:
        logger.info("Email not configured, skipping %r to %s", message.subject, message.to)
        return False

    resend.api_key = settings.RESEND_API_KEY
    try:
        resend.Emails.send({
            "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>",
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        })
    except Exception as e:
        raise EmailDeliveryError(str(e)) from e

    logger.info("Email %r sent to %s", message.subject, message.to)
    return True


async def send_now(message: EmailMessage) -> bool:
    """deliver_email() off the event loop, for callers that need the result."""
    return await run_in_threadpool(deliver_email, message)


# ── Templates ─────────────────────────────────────────────────

def _e(value) -> str:
    return html.escape(str(value or ""))


def new_request_admin(user_name: str, user_email: str, service_name: str, request_id: str) -> EmailMessage:
    return EmailMessage(
        to=settings.ADMIN_EMAIL,
        subject=f"New Service Request: {service_name}",
        html=f"""
            <h2>New Service Request</h2>
            <p><strong>User:</strong> {_e(user_name)} ({_e(user_email)})</p>
            <p><strong>Service:</strong> {_e(service_name)}</p>
            <p><strong>Request ID:</strong> {_e(request_id)}</p>
            <p>Please log in to the admin dashboard to review this request.</p>
        """,
    )


def request_received_user(to: str, user_name: str, service_name: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"We received your request: {service_name}",
        html=f"""
            <h2>Hello {_e(user_name)},</h2>
            <p>Thank you for requesting <strong>{_e(service_name)}</strong>.</p>
            <p>We have received your request and will review it shortly.</p>
            <p>You can track the status of your request in your dashboard.</p>
        """,
    )


def admin_reviewed_user(to: str, user_name: str, service_name: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"Update on your request: {service_name}",
        html=f"""
            <h2>Hello {_e(user_name)},</h2>
            <p>Your request for <strong>{_e(service_name)}</strong> has been reviewed by our team.</p>
            <p>We are currently processing it and will update you with the next steps soon.</p>
        """,
    )


STATUS_PHRASES = {
    "in_progress": "is now <strong>In Progress</strong>.",
    "resolved": "has been <strong>Resolved</strong>.",
}


def status_changed_user(
    to: str,
    user_name: str,
    service_name: str,
    status: str,
    estimated_time: Optional[str] = None,
) -> EmailMessage:
    phrase = STATUS_PHRASES.get(status, f"status has been updated to <strong>{_e(status)}</strong>.")
    estimate = f"<p><strong>Estimated Completion:</strong> {_e(estimated_time)}</p>" if estimated_time else ""
    return EmailMessage(
        to=to,
        subject=f"Status Update: {service_name}",
        html=f"""
            <h2>Hello {_e(user_name)},</h2>
            <p>Your request for <strong>{_e(service_name)}</strong> {phrase}</p>
            {estimate}
            <p>Visit your dashboard for more details.</p>
        """,
    )


def password_reset(to: str, display_name: str, reset_token: str) -> EmailMessage:
    link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={reset_token}"
    return EmailMessage(
        to=to,
        subject=f"Reset your {settings.APP_NAME} password",
        html=f"""
            <h2>Hello {_e(display_name)},</h2>
            <p>We received a request to reset your password.</p>
            <p><a href="{_e(link)}">Choose a new password</a></p>
            <p>This link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.
            If you did not ask for it, you can ignore this email.</p>
        """,
    )


# Legacy HTTP endpoint wording

def legacy_request_admin(user_name: str, user_email: str, service_name: str, request_id: str) -> EmailMessage:
    return EmailMessage(
        to=settings.ADMIN_EMAIL,
        subject=f"New Service Request - {service_name}",
        html=f"""
            <h1>New Service Request</h1>
            <table>
              <tr><td><strong>Service:</strong></td><td>{_e(service_name)}</td></tr>
              <tr><td><strong>Requested By:</strong></td><td>{_e(user_name)}</td></tr>
              <tr><td><strong>Email:</strong></td><td>{_e(user_email)}</td></tr>
              <tr><td><strong>Request ID:</strong></td><td>{_e(request_id)}</td></tr>
            </table>
            <p>Please log in to your admin dashboard to view and respond to this request.</p>
        """,
    )


def legacy_request_confirmation(to: str, user_name: str, service_name: str, request_id: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"Service Request Confirmation - {service_name}",
        html=f"""
            <h1>Request Confirmed!</h1>
            <p>Dear {_e(user_name)},</p>
            <p>Thank you for requesting our service: <strong>{_e(service_name)}</strong></p>
            <p>We have received your request and will get back to you soon.
            You can track the status of your request in your dashboard.</p>
            <p><strong>Request ID:</strong> {_e(request_id)}</p>
            <p>Best regards,<br/><strong>{_e(settings.EMAIL_FROM_NAME)}</strong></p>
        """,
    )
