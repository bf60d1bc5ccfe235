"""
shared/utils/security.py
JWT creation/verification, password hashing, and reset-link tokens.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from config.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


# ── JWT ───────────────────────────────────────────────────────

def create_access_token(
    user_id: str,
    role: str,
    email: str,
    session_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> tuple[str, str]:
    """
    Create a signed JWT access token.
    Returns (token, sid). The sid names the server-side inactivity session.
    """
    sid = session_id or str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "sid": sid,
        "iat": now,
        "exp": expire,
        "type": "access",
    }

    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, sid


def verify_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.
    Raises JWTError on invalid/expired token.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
    if payload.get("type") != "access" or "sid" not in payload:
        raise JWTError("Invalid token type")
    return payload


# ── Password reset links ──────────────────────────────────────

def _password_fingerprint(password_hash: Optional[str]) -> str:
    return hashlib.sha256((password_hash or "").encode()).hexdigest()[:16]


def create_password_reset_token(identity_id: str, password_hash: Optional[str]) -> str:
    """
    Single-use reset token: it carries a fingerprint of the current password
    hash, so it stops verifying once the password changes.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": identity_id,
        "pwd": _password_fingerprint(password_hash),
        "iat": now,
        "exp": now + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        "type": "password_reset",
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_password_reset_token(token: str) -> dict:
    """Decode a reset token without checking the fingerprint. Raises JWTError."""
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "password_reset":
        raise JWTError("Invalid token type")
    return payload


def reset_token_matches(payload: dict, password_hash: Optional[str]) -> bool:
    return payload.get("pwd") == _password_fingerprint(password_hash)


# ── Password ──────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
