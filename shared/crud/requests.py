"""
shared/crud/requests.py
Data access for service requests.

Lifecycle: created as PENDING and unseen; only admins move the status,
which may jump in any direction. resolved_at is stamped whenever the new
status is RESOLVED and is left untouched when moving away from it.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import ChangeKind, EntityChange, event_bus, snapshot
from shared.models.models import RequestStatus, ServiceRequest, utcnow
from shared.utils.errors import NotFoundError

COLLECTION = "service_requests"

_NEWEST_FIRST = (ServiceRequest.requested_at.desc(), ServiceRequest.id.desc())


async def create_service_request(
    db: AsyncSession,
    user_id: str,
    user_email: str,
    user_name: str,
    service_id: str,
    service_name: str,
    message: str,
) -> ServiceRequest:
    request = ServiceRequest(
        user_id=user_id,
        user_email=user_email,
        user_name=user_name,
        service_id=service_id,
        service_name=service_name,
        message=message,
        status=RequestStatus.PENDING,
        seen_by_admin=False,
        requested_at=utcnow(),
    )
    db.add(request)
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.CREATED, request.id, after=snapshot(request))
    )
    return request


async def get_request(db: AsyncSession, request_id: str) -> Optional[ServiceRequest]:
    return await db.get(ServiceRequest, request_id)


async def list_user_requests(
    db: AsyncSession, user_id: str, status: Optional[RequestStatus] = None
) -> list[ServiceRequest]:
    query = select(ServiceRequest).where(ServiceRequest.user_id == user_id).order_by(*_NEWEST_FIRST)
    if status is not None:
        query = query.where(ServiceRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars())


async def list_all_requests(
    db: AsyncSession, status: Optional[RequestStatus] = None
) -> list[ServiceRequest]:
    query = select(ServiceRequest).order_by(*_NEWEST_FIRST)
    if status is not None:
        query = query.where(ServiceRequest.status == status)
    result = await db.execute(query)
    return list(result.scalars())


async def update_request_status(
    db: AsyncSession,
    request_id: str,
    status: RequestStatus,
    admin_notes: Optional[str] = None,
    estimated_time: Optional[str] = None,
) -> ServiceRequest:
    """
    Set the status and, when non-empty, the admin notes and estimate.
    Other fields (seen_by_admin included) are left as stored.
    """
    request = await get_request(db, request_id)
    if not request:
        raise NotFoundError(COLLECTION, request_id)
    before = snapshot(request)

    request.status = status
    if admin_notes:
        request.admin_notes = admin_notes
    if estimated_time:
        request.estimated_time = estimated_time
    if status == RequestStatus.RESOLVED:
        request.resolved_at = utcnow()

    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.UPDATED, request.id, before=before, after=snapshot(request))
    )
    return request


async def mark_request_seen(db: AsyncSession, request_id: str) -> ServiceRequest:
    """Flip seen_by_admin to True. A no-op (and no event) if already seen."""
    request = await get_request(db, request_id)
    if not request:
        raise NotFoundError(COLLECTION, request_id)
    if request.seen_by_admin:
        return request
    before = snapshot(request)
    request.seen_by_admin = True
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.UPDATED, request.id, before=before, after=snapshot(request))
    )
    return request


async def count_requests_by_status(db: AsyncSession) -> dict[RequestStatus, int]:
    result = await db.execute(
        select(ServiceRequest.status, func.count(ServiceRequest.id)).group_by(ServiceRequest.status)
    )
    counts = {status: 0 for status in RequestStatus}
    counts.update({status: count for status, count in result.all()})
    return counts
