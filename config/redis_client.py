"""
config/redis_client.py
Async Redis client. Holds the inactivity sessions (one key per signed-in
session, expiring after SESSION_TIMEOUT_MINUTES without activity).
"""

import math
from typing import Optional

import redis.asyncio as aioredis

from config.settings import settings


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    """Initialize the Redis connection pool."""
    global redis_client
    redis_client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    # Test connection
    await redis_client.ping()


async def close_redis() -> None:
    """Close Redis connection pool."""
    global redis_client
    if redis_client:
        await redis_client.aclose()


def get_redis() -> aioredis.Redis:
    """FastAPI dependency to get Redis client."""
    if not redis_client:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


# ── Session Helpers ───────────────────────────────────────────
class SessionStore:
    """Inactivity-session keys. A missing key means the session is over."""

    PREFIX = "session"

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def key(cls, session_id: str) -> str:
        return f"{cls.PREFIX}:{session_id}"

    @classmethod
    def signed_out_key(cls, session_id: str) -> str:
        return f"{cls.key(session_id)}:signed_out"

    @staticmethod
    def _millis(ttl_seconds: float) -> int:
        return max(1, math.ceil(ttl_seconds * 1000))

    async def open(self, session_id: str, user_id: str, ttl_seconds: float) -> None:
        await self.client.set(self.key(session_id), user_id, px=self._millis(ttl_seconds))

    async def touch(self, session_id: str, ttl_seconds: float) -> bool:
        """Re-arm the inactivity window. Returns False if the session already expired."""
        return bool(await self.client.pexpire(self.key(session_id), self._millis(ttl_seconds)))

    async def owner(self, session_id: str) -> Optional[str]:
        return await self.client.get(self.key(session_id))

    async def remaining(self, session_id: str) -> int:
        """Seconds until expiry; negative when the key is gone."""
        return await self.client.ttl(self.key(session_id))

    async def remaining_seconds(self, session_id: str) -> Optional[float]:
        """Exact time left in the window, or None when the session is gone."""
        ms = await self.client.pttl(self.key(session_id))
        return ms / 1000 if ms >= 0 else None

    async def close(self, session_id: str) -> None:
        await self.client.delete(self.key(session_id))

    async def sign_out(self, session_id: str, marker_ttl_seconds: float) -> None:
        """Close the session and leave a marker so live monitors can tell sign-out from timeout."""
        pipe = self.client.pipeline()
        pipe.delete(self.key(session_id))
        pipe.set(self.signed_out_key(session_id), "1", px=self._millis(marker_ttl_seconds))
        await pipe.execute()

    async def signed_out(self, session_id: str) -> bool:
        return bool(await self.client.exists(self.signed_out_key(session_id)))
