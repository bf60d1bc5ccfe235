"""
services/notification/handlers.py
Entity-changed handlers for service requests.

    created                   → admin alert + requester confirmation
    updated, seen false→true  → "reviewed" email to the requester
    updated, status changed   → status-update email to the requester

Both update emails may go out for the same write. Edits to notes or the
estimate alone send nothing. Emails are queued fire-and-forget from the
threadpool, so an eager or slow broker never blocks the event loop.
"""

import logging

from starlette.concurrency import run_in_threadpool

from services.notification import emails
from services.notification.emails import EmailMessage
from shared.crud.requests import COLLECTION as REQUESTS
from shared.events import ChangeKind, EntityChange, event_bus

logger = logging.getLogger(__name__)


async def dispatch_email(message: EmailMessage) -> None:
    """Queue one email. A broker failure is logged, never raised."""
    from tasks.notification_tasks import send_email

    try:
        await run_in_threadpool(send_email.delay, message.to, message.subject, message.html)
    except Exception:
        logger.exception("Could not queue email %r to %s", message.subject, message.to)


@event_bus.on(REQUESTS, ChangeKind.CREATED)
async def on_request_created(change: EntityChange) -> None:
    request = change.after or {}
    logger.info("New request %s for %s", change.entity_id, request.get("service_name"))
    await dispatch_email(emails.new_request_admin(
        user_name=request.get("user_name"),
        user_email=request.get("user_email"),
        service_name=request.get("service_name"),
        request_id=change.entity_id,
    ))
    await dispatch_email(emails.request_received_user(
        to=request.get("user_email"),
        user_name=request.get("user_name"),
        service_name=request.get("service_name"),
    ))


@event_bus.on(REQUESTS, ChangeKind.UPDATED)
async def on_request_updated(change: EntityChange) -> None:
    before = change.before or {}
    after = change.after or {}

    if not before.get("seen_by_admin") and after.get("seen_by_admin"):
        await dispatch_email(emails.admin_reviewed_user(
            to=after.get("user_email"),
            user_name=after.get("user_name"),
            service_name=after.get("service_name"),
        ))

    if change.changed("status"):
        logger.info(
            "Request %s moved %s -> %s", change.entity_id, before.get("status"), after.get("status")
        )
        await dispatch_email(emails.status_changed_user(
            to=after.get("user_email"),
            user_name=after.get("user_name"),
            service_name=after.get("service_name"),
            status=after.get("status"),
            estimated_time=after.get("estimated_time"),
        ))
