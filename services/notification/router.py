"""
services/notification/router.py
Legacy notification endpoint for external callers.

Request creation does not call this: the entity-changed handlers in
handlers.py already send the same pair of emails.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from services.notification import emails
from shared.schemas.schemas import NotificationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notifications"])


@router.post("/send-notification", summary="Send request notifications")
async def send_notification(payload: NotificationRequest):
    """
    `new_request` sends the admin alert and the requester confirmation
    synchronously. Without an email API key both are logged and skipped.
    """
    if payload.type != "new_request":
        return {"success": False, "message": "Invalid notification type"}

    try:
        await emails.send_now(emails.legacy_request_admin(
            user_name=payload.userName,
            user_email=payload.userEmail,
            service_name=payload.service,
            request_id=payload.requestId,
        ))
        await emails.send_now(emails.legacy_request_confirmation(
            to=payload.userEmail,
            user_name=payload.userName,
            service_name=payload.service,
            request_id=payload.requestId,
        ))
    except Exception as e:
        logger.error(f"Notification error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {"success": True, "message": "Notifications sent"}
