"""
shared/crud/faqs.py
Data access for the FAQ list.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.events import ChangeKind, EntityChange, event_bus, snapshot
from shared.models.models import FAQ, utcnow
from shared.utils.errors import NotFoundError

COLLECTION = "faqs"


async def list_faqs(db: AsyncSession) -> list[FAQ]:
    result = await db.execute(select(FAQ).order_by(FAQ.order.asc(), FAQ.created_at.asc(), FAQ.id.asc()))
    return list(result.scalars())


async def get_faq(db: AsyncSession, faq_id: str) -> Optional[FAQ]:
    return await db.get(FAQ, faq_id)


async def create_faq(db: AsyncSession, question: str, answer: str, order: int = 0) -> FAQ:
    now = utcnow()
    faq = FAQ(question=question, answer=answer, order=order, created_at=now, updated_at=now)
    db.add(faq)
    await db.commit()
    await event_bus.publish(EntityChange(COLLECTION, ChangeKind.CREATED, faq.id, after=snapshot(faq)))
    return faq


async def update_faq(db: AsyncSession, faq_id: str, **updates) -> FAQ:
    faq = await get_faq(db, faq_id)
    if not faq:
        raise NotFoundError(COLLECTION, faq_id)
    before = snapshot(faq)
    for field, value in updates.items():
        setattr(faq, field, value)
    faq.updated_at = utcnow()
    await db.commit()
    await event_bus.publish(
        EntityChange(COLLECTION, ChangeKind.UPDATED, faq.id, before=before, after=snapshot(faq))
    )
    return faq


async def delete_faq(db: AsyncSession, faq_id: str) -> None:
    faq = await get_faq(db, faq_id)
    if not faq:
        raise NotFoundError(COLLECTION, faq_id)
    before = snapshot(faq)
    await db.delete(faq)
    await db.commit()
    await event_bus.publish(EntityChange(COLLECTION, ChangeKind.DELETED, faq_id, before=before))
