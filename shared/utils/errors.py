"""
shared/utils/errors.py
Error taxonomy shared by the data-access layer, the auth flows and the
exception handlers registered in main.py.
"""

from enum import Enum
from typing import Optional


# ── Store errors ──────────────────────────────────────────────

class StoreError(Exception):
    """Any failure talking to the data store."""


class NotFoundError(StoreError):
    def __init__(self, collection: str, entity_id: str):
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(f"{collection}/{entity_id} not found")


STORE_UNAVAILABLE_MESSAGE = "Something went wrong while saving or loading data. Please try again."


# ── Identity errors ───────────────────────────────────────────

class AuthErrorCode(str, Enum):
    USER_NOT_FOUND = "auth/user-not-found"
    INVALID_EMAIL = "auth/invalid-email"
    INVALID_CREDENTIALS = "auth/invalid-credential"
    EMAIL_IN_USE = "auth/email-already-in-use"
    WEAK_PASSWORD = "auth/weak-password"
    INVALID_RESET_TOKEN = "auth/invalid-action-code"
    OAUTH_FAILED = "auth/popup-closed-by-user"
    SESSION_EXPIRED = "auth/session-expired"
    UNAUTHENTICATED = "auth/unauthenticated"
    RESET_FAILED = "auth/reset-failed"


AUTH_ERROR_MESSAGES = {
    AuthErrorCode.USER_NOT_FOUND: "No account found with this email address.",
    AuthErrorCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorCode.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists.",
    AuthErrorCode.WEAK_PASSWORD: "Password should be at least 6 characters.",
    AuthErrorCode.INVALID_RESET_TOKEN: "This password reset link is invalid or has expired.",
    AuthErrorCode.SESSION_EXPIRED: "Your session has expired due to inactivity. Please sign in again.",
    AuthErrorCode.UNAUTHENTICATED: "Authentication required",
}

GENERIC_AUTH_MESSAGE = "Authentication failed. Please try again."
RESET_FAILED_MESSAGE = "Failed to send reset email. Please try again."

AUTH_ERROR_STATUS = {
    AuthErrorCode.USER_NOT_FOUND: 404,
    AuthErrorCode.INVALID_EMAIL: 422,
    AuthErrorCode.EMAIL_IN_USE: 409,
    AuthErrorCode.WEAK_PASSWORD: 422,
    AuthErrorCode.INVALID_RESET_TOKEN: 400,
    AuthErrorCode.RESET_FAILED: 502,
}


def auth_error_message(code: AuthErrorCode) -> str:
    if code == AuthErrorCode.RESET_FAILED:
        return RESET_FAILED_MESSAGE
    return AUTH_ERROR_MESSAGES.get(code, GENERIC_AUTH_MESSAGE)


class AuthError(Exception):
    """Identity-layer failure, rendered as {detail, code} by main.py."""

    def __init__(self, code: AuthErrorCode, status_code: Optional[int] = None):
        self.code = code
        self.status_code = status_code or AUTH_ERROR_STATUS.get(code, 401)
        super().__init__(code.value)

    @property
    def message(self) -> str:
        return auth_error_message(self.code)


class SessionExpiredError(AuthError):
    LOGIN_REDIRECT = "/login?timeout=true"

    def __init__(self):
        super().__init__(AuthErrorCode.SESSION_EXPIRED, 401)


# ── Email errors ──────────────────────────────────────────────

class EmailDeliveryError(Exception):
    """Raised by the email provider wrapper; never shown to end users."""
