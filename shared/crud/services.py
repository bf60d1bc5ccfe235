"""
shared/crud/services.py
Data access for the service catalog.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import ChangeKind, EntityChange, event_bus, snapshot
from shared.models.models import Service, ServiceStatus, utcnow
from shared.utils.errors import NotFoundError

COLLECTION = "services"


async def list_services(db: AsyncSession, status: Optional[ServiceStatus] = None) -> list[Service]:
    query = select(Service).order_by(Service.order.asc(), Service.created_at.asc(), Service.id.asc())
    if status is not None:
        query = query.where(Service.status == status)
    result = await db.execute(query)
    return list(result.scalars())


async def get_service(db: AsyncSession, service_id: str) -> Optional[Service]:
    return await db.get(Service, service_id)


async def create_service(
    db: AsyncSession,
    title: str,
    description: str,
    status: ServiceStatus = ServiceStatus.AVAILABLE,
    order: int = 0,
) -> Service:
    now = utcnow()
    service = Service(
        title=title,
        description=description,
        status=status,
        order=order,
        created_at=now,
        updated_at=now,
    )
    db.add(service)
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.CREATED, service.id, after=snapshot(service))
    )
    return service


async def update_service(db: AsyncSession, service_id: str, **updates) -> Service:
    """Partial update; unspecified fields keep their stored values."""
    service = await get_service(db, service_id)
    if not service:
        raise NotFoundError(COLLECTION, service_id)
    before = snapshot(service)
    for field, value in updates.items():
        setattr(service, field, value)
    service.updated_at = utcnow()
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.UPDATED, service.id, before=before, after=snapshot(service))
    )
    return service


async def delete_service(db: AsyncSession, service_id: str) -> None:
    service = await get_service(db, service_id)
    if not service:
        raise NotFoundError(COLLECTION, service_id)
    before = snapshot(service)
    await db.delete(service)
    await db.commit()
    await event_bus.publish(EntityChange(COLLECTION, ChangeKind.DELETED, service_id, before=before))
