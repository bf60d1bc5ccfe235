"""
tasks/notification_tasks.py
Celery task for email delivery.

Single attempt per message. Failures are logged and dropped.

Usage:
    from tasks.notification_tasks import send_email
    send_email.delay(to_email, subject, html_body)
"""

import logging

from services.notification.emails import EmailMessage, deliver_email
from shared.utils.errors import EmailDeliveryError
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(max_retries=0, acks_late=False)
def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """Send a transactional email via Resend. Never retried."""
    try:
        return deliver_email(EmailMessage(to=to_email, subject=subject, html=html_body))
    except EmailDeliveryError as e:
        logger.warning(f"Email send failed ({subject!r} to {to_email}): {e}")
        return False
