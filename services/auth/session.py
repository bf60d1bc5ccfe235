"""
services/auth/session.py
Inactivity sessions.

A SessionContext is created by SessionManager.start() on sign-in and
handed to route handlers by dependency; nothing about the signed-in user
is kept in module state. The session itself is a Redis key that expires
after SESSION_TIMEOUT_MINUTES without activity.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from jose import JWTError

from config.redis_client import SessionStore
from config.settings import settings
from shared.models.models import User
from shared.utils.errors import AuthError, AuthErrorCode, SessionExpiredError
from shared.utils.security import create_access_token, verify_access_token
from shared.utils.session_timer import ACTIVITY_EVENTS, InactivityTimer

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    session_id: str
    user_id: str
    email: str
    role: str
    claims: dict = field(default_factory=dict)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        timeout_seconds: Optional[float] = None,
        warning_seconds: Optional[float] = None,
    ):
        self.store = store
        self.timeout_seconds = timeout_seconds or settings.session_timeout_seconds
        self.warning_seconds = warning_seconds or settings.session_warning_seconds

    async def start(self, user: User) -> tuple[str, SessionContext]:
        """Issue an access token and open its inactivity session."""
        token, sid = create_access_token(
            user_id=user.id,
            role=user.role.value,
            email=user.email,
        )
        await self.store.open(sid, user.id, self.timeout_seconds)
        logger.info("Session %s started for %s", sid, user.email)
        return token, SessionContext(
            session_id=sid,
            user_id=user.id,
            email=user.email,
            role=user.role.value,
            claims=verify_access_token(token),
        )

    async def resume(self, token: str) -> SessionContext:
        """
        Rebuild the context from a presented token.
        Raises AuthError for a bad token and SessionExpiredError when the
        inactivity session is gone.
        """
        try:
            payload = verify_access_token(token)
        except JWTError:
            raise AuthError(AuthErrorCode.UNAUTHENTICATED)

        sid = payload["sid"]
        if await self.store.owner(sid) != payload["sub"]:
            raise SessionExpiredError()

        return SessionContext(
            session_id=sid,
            user_id=payload["sub"],
            email=payload["email"],
            role=payload["role"],
            claims=payload,
        )

    async def touch(self, ctx: SessionContext) -> None:
        """Record activity: re-arm the inactivity window to its full length."""
        if not await self.store.touch(ctx.session_id, self.timeout_seconds):
            raise SessionExpiredError()

    async def status(self, ctx: SessionContext) -> dict:
        remaining = await self.store.remaining(ctx.session_id)
        if remaining < 0:
            raise SessionExpiredError()
        return {
            "expires_in": remaining,
            "warning": remaining <= self.warning_seconds,
            "timeout_seconds": self.timeout_seconds,
            "warning_seconds": self.warning_seconds,
        }

    async def end(self, ctx: SessionContext) -> None:
        await self.store.close(ctx.session_id)
        logger.info("Session %s ended", ctx.session_id)

    async def sign_out(self, ctx: SessionContext) -> None:
        """End the session on the user's request."""
        await self.store.sign_out(ctx.session_id, self.timeout_seconds)
        logger.info("Session %s signed out", ctx.session_id)

    async def time_left(self, ctx: SessionContext) -> Optional[float]:
        return await self.store.remaining_seconds(ctx.session_id)

    async def was_signed_out(self, ctx: SessionContext) -> bool:
        return await self.store.signed_out(ctx.session_id)


# ── Live monitor ──────────────────────────────────────────────

Send = Callable[[dict], Awaitable[None]]
Close = Callable[[], Awaitable[None]]

SIGNED_OUT = {"type": "signed_out", "redirect": "/"}


class SessionMonitor:
    """
    Drives one websocket connection: pushes session_warning before the
    timeout and session_expired at it, re-arming on client activity.

    The Redis key stays the source of truth. When a timer fires, the
    monitor reads the window left in the store, so activity seen over
    HTTP postpones the warning (or answers it with session_extended)
    and a sign-out elsewhere closes the socket with signed_out.

    Client messages:
        {"type": "activity", "event": "keydown"}
        {"type": "stay_logged_in"}
        {"type": "logout"}
    """

    def __init__(self, manager: SessionManager, ctx: SessionContext, send: Send, close: Close):
        self.manager = manager
        self.ctx = ctx
        self._send = send
        self._close = close
        self.closed = False
        self._warned = False
        self.timer = InactivityTimer(
            timeout_seconds=manager.timeout_seconds,
            warning_seconds=manager.warning_seconds,
            on_warning=self._warn,
            on_expire=self._expire,
        )

    def start(self) -> None:
        self.timer.start()

    async def handle(self, message: dict) -> None:
        kind = message.get("type")
        if kind == "activity":
            event = message.get("event")
            if event is not None and event not in ACTIVITY_EVENTS:
                return
            await self._record_activity()
        elif kind == "stay_logged_in":
            if await self._record_activity():
                await self._send({"type": "session_extended", "expires_in": self.manager.timeout_seconds})
        elif kind == "logout":
            await self.manager.sign_out(self.ctx)
            await self._finish(SIGNED_OUT)
        else:
            await self._send({"type": "error", "detail": f"Unknown message type: {kind}"})

    def stop(self) -> None:
        self.timer.cancel()

    async def _record_activity(self) -> bool:
        try:
            await self.manager.touch(self.ctx)
        except SessionExpiredError:
            await self._session_over()
            return False
        self._warned = False
        self.timer.reset()
        return True

    async def _warn(self) -> None:
        remaining = await self.manager.time_left(self.ctx)
        if remaining is None:
            await self._session_over()
        elif remaining > self.manager.warning_seconds:
            # touched over HTTP since the timer was armed
            self.timer.rearm(remaining)
        elif not self._warned:
            self._warned = True
            await self._send({
                "type": "session_warning",
                "expires_in": self.manager.warning_seconds,
            })

    async def _expire(self) -> None:
        remaining = await self.manager.time_left(self.ctx)
        if remaining is None:
            await self._session_over()
            return
        self.timer.rearm(remaining)
        if self._warned and remaining > self.manager.warning_seconds:
            self._warned = False
            await self._send({"type": "session_extended", "expires_in": remaining})

    async def _session_over(self) -> None:
        if await self.manager.was_signed_out(self.ctx):
            await self._finish(SIGNED_OUT)
            return
        await self.manager.end(self.ctx)
        await self._finish({
            "type": "session_expired",
            "code": AuthErrorCode.SESSION_EXPIRED.value,
            "redirect": SessionExpiredError.LOGIN_REDIRECT,
        })

    async def _finish(self, message: dict) -> None:
        if self.closed:
            return
        self.closed = True
        self.timer.cancel()
        await self._send(message)
        await self._close()
