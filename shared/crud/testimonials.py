"""
shared/crud/testimonials.py
Data access for client testimonials.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import ChangeKind, EntityChange, event_bus, snapshot
from shared.models.models import Testimonial, utcnow
from shared.utils.errors import NotFoundError

COLLECTION = "testimonials"

_ORDERING = (Testimonial.order.asc(), Testimonial.created_at.asc(), Testimonial.id.asc())


async def list_testimonials(db: AsyncSession) -> list[Testimonial]:
    result = await db.execute(select(Testimonial).order_by(*_ORDERING))
    return list(result.scalars())


async def list_visible_testimonials(db: AsyncSession) -> list[Testimonial]:
    result = await db.execute(
        select(Testimonial).where(Testimonial.is_visible.is_(True)).order_by(*_ORDERING)
    )
    return list(result.scalars())


async def get_testimonial(db: AsyncSession, testimonial_id: str) -> Optional[Testimonial]:
    return await db.get(Testimonial, testimonial_id)


async def create_testimonial(
    db: AsyncSession,
    client_name: str,
    message: str,
    rating: int,
    client_role: str = "",
) -> Testimonial:
    now = utcnow()
    testimonial = Testimonial(
        client_name=client_name,
        client_role=client_role or "",
        message=message,
        rating=rating,
        order=0,
        is_visible=True,
        created_at=now,
        updated_at=now,
    )
    db.add(testimonial)
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.CREATED, testimonial.id, after=snapshot(testimonial))
    )
    return testimonial


async def update_testimonial(db: AsyncSession, testimonial_id: str, **updates) -> Testimonial:
    testimonial = await get_testimonial(db, testimonial_id)
    if not testimonial:
        raise NotFoundError(COLLECTION, testimonial_id)
    before = snapshot(testimonial)
    for field, value in updates.items():
        setattr(testimonial, field, value)
    testimonial.updated_at = utcnow()
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.UPDATED, testimonial.id, before=before, after=snapshot(testimonial))
    )
    return testimonial


async def delete_testimonial(db: AsyncSession, testimonial_id: str) -> None:
    testimonial = await get_testimonial(db, testimonial_id)
    if not testimonial:
        raise NotFoundError(COLLECTION, testimonial_id)
    before = snapshot(testimonial)
    await db.delete(testimonial)
    await db.commit()
    await event_bus.publish(EntityChange(COLLECTION, ChangeKind.DELETED, testimonial_id, before=before))
