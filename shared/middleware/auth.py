"""
shared/middleware/auth.py
FastAPI dependency functions for authentication and authorization.
The token arrives as a Bearer header or the httpOnly access_token cookie;
every authenticated call re-arms the Redis inactivity session.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import SessionStore, get_redis
from services.auth.session import SessionContext, SessionManager
from shared.crud import users as users_crud
from shared.models.models import User, UserRole, utcnow
from shared.utils.errors import AuthError, AuthErrorCode

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "access_token"


def get_session_manager(redis=Depends(get_redis)) -> SessionManager:
    return SessionManager(SessionStore(redis))


def presented_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE)


async def peek_session_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionContext:
    """Resolve the session without counting the call as activity."""
    token = presented_token(request, credentials)
    if not token:
        raise AuthError(AuthErrorCode.UNAUTHENTICATED)
    return await manager.resume(token)


async def get_session_context(
    ctx: SessionContext = Depends(peek_session_context),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionContext:
    """Resolve the session and re-arm its inactivity window."""
    await manager.touch(ctx)
    return ctx


async def get_current_user(
    ctx: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the profile named by the session; degraded claims-only profile if the store is down."""
    try:
        user = await users_crud.get_user(db, ctx.user_id)
    except SQLAlchemyError:
        logger.exception("Profile load failed for %s, using token claims", ctx.email)
        now = utcnow()
        return User(
            id=ctx.user_id,
            email=ctx.email,
            display_name=ctx.claims.get("name", "User"),
            photo_url="",
            role=UserRole.USER,
            created_at=now,
            last_active_at=now,
        )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


class RoleRequired:
    """Dependency factory for role-based access control."""

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(
        self,
        current_user: User = Depends(get_current_user),
    ) -> User:
        if current_user.role not in self.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Required role: {[r.value for r in self.roles]}",
            )
        return current_user


# Convenience role dependencies
require_user = RoleRequired(UserRole.USER, UserRole.ADMIN)
require_admin = RoleRequired(UserRole.ADMIN)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionManager = Depends(get_session_manager),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Returns current user if authenticated, None otherwise. For public endpoints."""
    token = presented_token(request, credentials)
    if not token:
        return None
    try:
        ctx = await manager.resume(token)
        await manager.touch(ctx)
    except AuthError:
        return None
    return await users_crud.get_user(db, ctx.user_id)
