"""
services/auth/profile.py
Profile reconciliation run after every successful sign-in.

reconcile_profile is the one place a role is ever changed automatically:
it creates the profile on first sign-in and promotes the configured admin
address to ADMIN. It never demotes, and calling it twice is a no-op.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.crud import users as users_crud
from shared.models.models import Identity, User, UserRole, utcnow
from shared.utils.errors import StoreError

logger = logging.getLogger(__name__)


def is_admin_email(email: str, admin_email: str) -> bool:
    return bool(admin_email) and email.strip().lower() == admin_email.strip().lower()


async def reconcile_profile(db: AsyncSession, identity: Identity, admin_email: str) -> User:
    expected_admin = is_admin_email(identity.email, admin_email)
    user = await users_crud.get_user(db, identity.id)

    if user is None:
        role = UserRole.ADMIN if expected_admin else UserRole.USER
        logger.info("Creating %s profile for %s", role.value, identity.email)
        return await users_crud.create_user(
            db,
            user_id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            photo_url=identity.photo_url,
            role=role,
        )

    if expected_admin and not user.is_admin:
        logger.warning("Promoting %s to admin", identity.email)
        return await users_crud.update_user_role(db, user.id, UserRole.ADMIN)

    return user


def fallback_profile(identity: Identity) -> User:
    """Transient (never persisted) profile used when the store is unreachable."""
    now = utcnow()
    return User(
        id=identity.id,
        email=identity.email,
        display_name=identity.display_name or "User",
        photo_url=identity.photo_url or "",
        role=UserRole.USER,
        created_at=now,
        last_active_at=now,
    )


async def load_session_profile(db: AsyncSession, identity: Identity, admin_email: str) -> User:
    """
    reconcile_profile for the sign-in path. A store failure degrades to a
    USER-role fallback profile instead of blocking the sign-in.
    """
    try:
        return await reconcile_profile(db, identity, admin_email)
    except (SQLAlchemyError, StoreError):
        logger.exception("Profile lookup failed for %s, using fallback profile", identity.email)
        await db.rollback()
        return fallback_profile(identity)
