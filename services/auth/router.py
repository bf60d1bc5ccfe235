"""
services/auth/router.py
Identity endpoints: email/password, Google OAuth2, password reset,
sign-out and the inactivity session (status, keepalive, live monitor).
"""

import logging
from typing import Optional

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, WebSocket, WebSocketDisconnect, status
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.auth.profile import load_session_profile
from services.auth.session import SessionContext, SessionManager, SessionMonitor
from services.notification import emails
from shared.crud import users as users_crud
from shared.middleware.auth import (
    ACCESS_COOKIE,
    get_current_user,
    get_session_context,
    get_session_manager,
    peek_session_context,
    presented_token,
    security,
)
from shared.models.models import Identity, IdentityProvider, User
from shared.schemas.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionStatusResponse,
    SignInRequest,
    SignOutResponse,
    SignUpRequest,
    UserResponse,
)
from shared.utils.errors import AuthError, AuthErrorCode, EmailDeliveryError, NotFoundError
from shared.utils.security import (
    MIN_PASSWORD_LENGTH,
    create_password_reset_token,
    hash_password,
    read_password_reset_token,
    reset_token_matches,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

_email_adapter = TypeAdapter(EmailStr)

# ── OAuth Setup ───────────────────────────────────────────────
oauth = OAuth()
oauth.register(
    name="google",
    client_id=settings.GOOGLE_CLIENT_ID,
    client_secret=settings.GOOGLE_CLIENT_SECRET,
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_kwargs={"scope": "openid email profile"},
    redirect_uri=settings.GOOGLE_REDIRECT_URI,
)


# ── Helpers ───────────────────────────────────────────────────

def _check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(AuthErrorCode.WEAK_PASSWORD)


def _set_session_cookie(response: Response, token: str, remember_me: bool) -> None:
    """
    remember_me keeps the cookie across browser restarts;
    otherwise it is a browser-session cookie.
    """
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60 if remember_me else None,
        path="/",
    )


async def _begin_session(
    db: AsyncSession,
    manager: SessionManager,
    identity: Identity,
    response: Response,
    remember_me: bool = True,
) -> AuthResponse:
    """Reconcile the profile, open the inactivity session, set the cookie."""
    user = await load_session_profile(db, identity, settings.ADMIN_EMAIL)
    try:
        await users_crud.update_user_activity(db, user.id)
    except (SQLAlchemyError, NotFoundError):
        logger.warning("Could not record sign-in activity for %s", user.email)
        await db.rollback()

    access_token, _ = await manager.start(user)
    _set_session_cookie(response, access_token, remember_me)

    return AuthResponse(
        access_token=access_token,
        expires_in=manager.timeout_seconds,
        user=UserResponse.model_validate(user),
    )


async def _google_identity(db: AsyncSession, userinfo: dict) -> Identity:
    """Find the identity by Google subject, then by email; create it if neither matches."""
    subject = userinfo["sub"]
    identity = await users_crud.get_identity_by_provider(db, IdentityProvider.GOOGLE, subject)
    if identity:
        return identity

    existing = await users_crud.get_identity_by_email(db, userinfo["email"])
    if existing:
        return await users_crud.link_identity_provider(
            db,
            existing.id,
            IdentityProvider.GOOGLE,
            subject,
            photo_url=userinfo.get("picture"),
        )

    return await users_crud.create_identity(
        db,
        email=userinfo["email"],
        display_name=userinfo.get("name", ""),
        provider=IdentityProvider.GOOGLE,
        provider_subject=subject,
        photo_url=userinfo.get("picture") or "",
    )


# ── Email / password ──────────────────────────────────────────

@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def sign_up(
    payload: SignUpRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    manager: SessionManager = Depends(get_session_manager),
):
    _check_password_strength(payload.password)
    if await users_crud.get_identity_by_email(db, payload.email):
        raise AuthError(AuthErrorCode.EMAIL_IN_USE)

    identity = await users_crud.create_identity(
        db,
        email=payload.email,
        display_name=payload.display_name,
        provider=IdentityProvider.PASSWORD,
        password_hash=hash_password(payload.password),
    )
    logger.info("New account %s", identity.email)
    return await _begin_session(db, manager, identity, response)


@router.post("/signin", response_model=AuthResponse, summary="Sign in with email and password")
async def sign_in(
    payload: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    manager: SessionManager = Depends(get_session_manager),
):
    identity = await users_crud.get_identity_by_email(db, payload.email)
    if not identity:
        raise AuthError(AuthErrorCode.USER_NOT_FOUND)
    if not verify_password(payload.password, identity.password_hash):
        raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)

    return await _begin_session(db, manager, identity, response, remember_me=payload.remember_me)


# ── Google OAuth2 ─────────────────────────────────────────────

@router.get("/google", summary="Initiate Google OAuth2 login")
async def google_login(request: Request):
    """
    Redirects the user to Google's OAuth2 consent page.
    The client should open this URL in a browser.
    """
    return await oauth.google.authorize_redirect(request, settings.GOOGLE_REDIRECT_URI)


@router.get("/google/callback", response_model=AuthResponse, summary="Google OAuth2 callback")
async def google_callback(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    manager: SessionManager = Depends(get_session_manager),
):
    try:
        token = await oauth.google.authorize_access_token(request)
    except OAuthError as e:
        logger.warning(f"Google OAuth failed: {e.error}")
        raise AuthError(AuthErrorCode.OAUTH_FAILED, status.HTTP_400_BAD_REQUEST)

    userinfo = token.get("userinfo")
    if not userinfo or not userinfo.get("email"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not fetch user info from Google",
        )

    identity = await _google_identity(db, userinfo)
    return await _begin_session(db, manager, identity, response)


# ── Password reset ────────────────────────────────────────────

@router.post("/forgot-password", response_model=MessageResponse, summary="Send a password reset email")
async def forgot_password(payload: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    try:
        email = _email_adapter.validate_python(payload.email.strip())
    except ValidationError:
        raise AuthError(AuthErrorCode.INVALID_EMAIL)

    identity = await users_crud.get_identity_by_email(db, email)
    if not identity:
        raise AuthError(AuthErrorCode.USER_NOT_FOUND)

    reset_token = create_password_reset_token(identity.id, identity.password_hash)
    try:
        await emails.send_now(emails.password_reset(identity.email, identity.display_name, reset_token))
    except EmailDeliveryError as e:
        logger.error(f"Password reset email to {identity.email} failed: {e}")
        raise AuthError(AuthErrorCode.RESET_FAILED)

    return MessageResponse(message="Password reset email sent! Check your inbox.")


@router.post("/reset-password", response_model=MessageResponse, summary="Set a new password")
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    try:
        claims = read_password_reset_token(payload.token)
    except JWTError:
        raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)

    identity = await users_crud.get_identity(db, claims["sub"])
    if not identity or not reset_token_matches(claims, identity.password_hash):
        raise AuthError(AuthErrorCode.INVALID_RESET_TOKEN)

    _check_password_strength(payload.new_password)
    await users_crud.set_identity_password(db, identity.id, hash_password(payload.new_password))
    logger.info("Password reset for %s", identity.email)
    return MessageResponse(message="Password updated. Please sign in.")


# ── Session ───────────────────────────────────────────────────

@router.post("/signout", response_model=SignOutResponse, summary="Sign out")
async def sign_out(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionManager = Depends(get_session_manager),
):
    """Ends the inactivity session (if still open) and clears the cookie."""
    token = presented_token(request, credentials)
    if token:
        try:
            await manager.sign_out(await manager.resume(token))
        except AuthError:
            logger.debug("Sign-out with an already closed session")

    response.delete_cookie(key=ACCESS_COOKIE, path="/")
    return SignOutResponse(message="Signed out successfully")


@router.get("/me", response_model=UserResponse, summary="Get current user")
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)


@router.get("/session", response_model=SessionStatusResponse, summary="Inactivity session status")
async def session_status(
    ctx: SessionContext = Depends(peek_session_context),
    manager: SessionManager = Depends(get_session_manager),
):
    """Read-only probe; polling it does not count as activity."""
    return await manager.status(ctx)


@router.post("/session/keepalive", response_model=SessionStatusResponse, summary="Stay logged in")
async def keepalive(
    ctx: SessionContext = Depends(get_session_context),
    manager: SessionManager = Depends(get_session_manager),
):
    return await manager.status(ctx)


@router.websocket("/session/ws")
async def session_monitor(
    websocket: WebSocket,
    token: str = Query(...),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Live inactivity monitor. The server pushes session_warning shortly
    before the timeout and session_expired when it is reached.
    """
    try:
        ctx = await manager.resume(token)
    except AuthError as e:
        await websocket.close(code=4401, reason=e.code.value)
        return

    await websocket.accept()
    monitor = SessionMonitor(manager, ctx, websocket.send_json, websocket.close)
    monitor.start()
    await websocket.send_json({"type": "session_started", **await manager.status(ctx)})

    try:
        while not monitor.closed:
            message = await websocket.receive_json()
            await monitor.handle(message)
    except WebSocketDisconnect:
        logger.debug("Session monitor %s disconnected", ctx.session_id)
    finally:
        monitor.stop()
