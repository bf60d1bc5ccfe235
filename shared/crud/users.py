"""
shared/crud/users.py
Data access for user profiles and sign-in identities.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    Identity,
    IdentityProvider,
    RequestStatus,
    ServiceRequest,
    User,
    UserRole,
    utcnow,
)
from shared.utils.errors import NotFoundError


# ── Profiles ──────────────────────────────────────────────────

async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def create_user(
    db: AsyncSession,
    user_id: str,
    email: str,
    display_name: str,
    photo_url: str = "",
    role: UserRole = UserRole.USER,
) -> User:
    now = utcnow()
    user = User(
        id=user_id,
        email=email,
        display_name=display_name or "User",
        photo_url=photo_url or "",
        role=role,
        created_at=now,
        last_active_at=now,
    )
    db.add(user)
    await db.commit()
    return user


async def update_user_role(db: AsyncSession, user_id: str, role: UserRole) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundError("users", user_id)
    user.role = role
    await db.commit()
    return user


async def update_user_profile(db: AsyncSession, user_id: str, **updates) -> User:
    """Partial update: only the given fields are written."""
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundError("users", user_id)
    for field, value in updates.items():
        setattr(user, field, value)
    await db.commit()
    return user


async def update_user_activity(db: AsyncSession, user_id: str) -> None:
    user = await get_user(db, user_id)
    if not user:
        raise NotFoundError("users", user_id)
    user.last_active_at = utcnow()
    await db.commit()


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id))
    return list(result.scalars())


async def get_user_stats(db: AsyncSession, user_id: str) -> dict:
    result = await db.execute(
        select(ServiceRequest.status, func.count(ServiceRequest.id))
        .where(ServiceRequest.user_id == user_id)
        .group_by(ServiceRequest.status)
    )
    counts = {status: count for status, count in result.all()}
    return {
        "total_requests": sum(counts.values()),
        "pending_requests": counts.get(RequestStatus.PENDING, 0),
        "in_progress_requests": counts.get(RequestStatus.IN_PROGRESS, 0),
        "resolved_requests": counts.get(RequestStatus.RESOLVED, 0),
    }


# ── Identities ────────────────────────────────────────────────

def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_identity(db: AsyncSession, identity_id: str) -> Optional[Identity]:
    return await db.get(Identity, identity_id)


async def get_identity_by_email(db: AsyncSession, email: str) -> Optional[Identity]:
    return await db.scalar(select(Identity).where(Identity.email == normalize_email(email)))


async def get_identity_by_provider(
    db: AsyncSession, provider: IdentityProvider, subject: str
) -> Optional[Identity]:
    return await db.scalar(
        select(Identity).where(
            Identity.provider == provider,
            Identity.provider_subject == subject,
        )
    )


async def create_identity(
    db: AsyncSession,
    email: str,
    display_name: str,
    provider: IdentityProvider,
    password_hash: Optional[str] = None,
    provider_subject: Optional[str] = None,
    photo_url: str = "",
) -> Identity:
    identity = Identity(
        email=normalize_email(email),
        display_name=display_name or "User",
        provider=provider,
        password_hash=password_hash,
        provider_subject=provider_subject,
        photo_url=photo_url or "",
        created_at=utcnow(),
    )
    db.add(identity)
    await db.commit()
    return identity


async def link_identity_provider(
    db: AsyncSession,
    identity_id: str,
    provider: IdentityProvider,
    subject: str,
    photo_url: Optional[str] = None,
) -> Identity:
    """Attach a federated login to an existing email identity."""
    identity = await get_identity(db, identity_id)
    if not identity:
        raise NotFoundError("identities", identity_id)
    identity.provider = provider
    identity.provider_subject = subject
    if photo_url and not identity.photo_url:
        identity.photo_url = photo_url
    await db.commit()
    return identity


async def set_identity_password(db: AsyncSession, identity_id: str, password_hash: str) -> Identity:
    identity = await get_identity(db, identity_id)
    if not identity:
        raise NotFoundError("identities", identity_id)
    identity.password_hash = password_hash
    await db.commit()
    return identity
