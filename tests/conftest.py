"""
tests/conftest.py
Shared fixtures: per-test SQLite database, fake Redis, HTTP client,
signed-in users and a captured email outbox.
"""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test-portal.db"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["RESEND_API_KEY"] = ""
os.environ["ADMIN_EMAIL"] = "admin@example.com"

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from config.database import Base, get_db, get_session_factory
from config.redis_client import SessionStore, get_redis
from config.settings import settings
from main import app
from shared.crud import users as users_crud
from shared.models.models import User, UserRole
from shared.utils.security import create_access_token
from tasks.celery_app import celery_app

celery_app.conf.task_always_eager = True


def session_id_for(user: User) -> str:
    return f"test-{user.id}"


def auth_headers(user: User) -> dict:
    """Bearer header for a user whose session was opened by create_signed_in_user()."""
    token, _ = create_access_token(
        user_id=user.id,
        role=user.role.value,
        email=user.email,
        session_id=session_id_for(user),
    )
    return {"Authorization": f"Bearer {token}"}


async def create_signed_in_user(
    db: AsyncSession,
    redis,
    email: str,
    display_name: str = "Test User",
    role: UserRole = UserRole.USER,
) -> User:
    identity_id = f"uid-{email}"
    user = await users_crud.create_user(db, identity_id, email, display_name, role=role)
    await SessionStore(redis).open(session_id_for(user), user.id, settings.session_timeout_seconds)
    return user


# ── Infrastructure ────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def client(session_factory, redis):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_redis] = lambda: redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Every email the app tries to deliver, in order."""
    sent = []

    def fake_deliver(message):
        sent.append(message)
        return True

    monkeypatch.setattr("tasks.notification_tasks.deliver_email", fake_deliver)
    monkeypatch.setattr("services.notification.emails.deliver_email", fake_deliver)
    return sent


# ── Users ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def user(db, redis) -> User:
    return await create_signed_in_user(db, redis, "client@example.com", "Priya Shah")


@pytest_asyncio.fixture
async def admin_user(db, redis) -> User:
    return await create_signed_in_user(
        db, redis, "admin@example.com", "Practice Admin", role=UserRole.ADMIN
    )
