"""
tests/test_profile.py
Tests for profile reconciliation and the degraded fallback profile.
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth.profile import is_admin_email, load_session_profile, reconcile_profile
from shared.crud import users as users_crud
from shared.models.models import IdentityProvider, UserRole

ADMIN = "admin@example.com"


async def _identity(db: AsyncSession, email: str):
    return await users_crud.create_identity(
        db, email=email, display_name="Someone", provider=IdentityProvider.PASSWORD
    )


@pytest.mark.asyncio
async def test_first_sign_in_creates_user_profile(db: AsyncSession):
    identity = await _identity(db, "client@example.com")
    user = await reconcile_profile(db, identity, ADMIN)
    assert user.id == identity.id
    assert user.role == UserRole.USER
    assert (await users_crud.get_user(db, identity.id)) is not None


@pytest.mark.asyncio
async def test_first_sign_in_with_admin_email_creates_admin(db: AsyncSession):
    identity = await _identity(db, ADMIN)
    user = await reconcile_profile(db, identity, ADMIN)
    assert user.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_existing_profile_is_promoted(db: AsyncSession):
    """A profile created before the address was made admin is repaired on next sign-in."""
    identity = await _identity(db, ADMIN)
    await users_crud.create_user(db, identity.id, identity.email, "Owner", role=UserRole.USER)

    user = await reconcile_profile(db, identity, ADMIN)
    assert user.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_admin_is_never_demoted(db: AsyncSession):
    identity = await _identity(db, "former.admin@example.com")
    await users_crud.create_user(db, identity.id, identity.email, "Former", role=UserRole.ADMIN)

    user = await reconcile_profile(db, identity, ADMIN)
    assert user.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db: AsyncSession):
    identity = await _identity(db, ADMIN)
    first = await reconcile_profile(db, identity, ADMIN)
    second = await reconcile_profile(db, identity, ADMIN)
    assert first.id == second.id
    assert second.role == UserRole.ADMIN
    assert len(await users_crud.list_users(db)) == 1


def test_admin_email_comparison_trims_and_ignores_case():
    assert is_admin_email("  Admin@Example.com ", "admin@example.com")
    assert is_admin_email("admin@example.com", " ADMIN@EXAMPLE.COM")
    assert not is_admin_email("someone@example.com", "admin@example.com")
    assert not is_admin_email("admin@example.com", "")


@pytest.mark.asyncio
async def test_store_failure_falls_back_to_user_profile(db: AsyncSession, monkeypatch):
    """If the profile store fails after sign-in, a USER-role profile keeps the app usable."""
    identity = await _identity(db, ADMIN)

    async def broken_get_user(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(users_crud, "get_user", broken_get_user)

    user = await load_session_profile(db, identity, ADMIN)
    assert user.id == identity.id
    assert user.email == identity.email
    assert user.role == UserRole.USER
