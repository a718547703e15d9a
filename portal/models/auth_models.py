"""
Authentication Pipeline Models.

Typed request/response contracts between the auth backends, the
``AuthService`` and the session context.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from portal.models.user import UserProfile


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication error categories.

    Raised inside :class:`~portal.exceptions.AuthError` and used by the
    views to decide which feedback to display.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    VALIDATION_ERROR = "validation_error"
    SESSION_EXPIRED = "session_expired"
    NOT_AUTHENTICATED = "not_authenticated"
    FORBIDDEN = "forbidden"
    USER_NOT_FOUND = "user_not_found"
    NETWORK_ERROR = "network_error"
    UNKNOWN_ERROR = "unknown_error"


# ---------------------------------------------------------------------------
# Supabase error-code mapping
# ---------------------------------------------------------------------------

SUPABASE_ERROR_MAP: dict[str, AuthErrorCode] = {
    "invalid_credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid login credentials": AuthErrorCode.INVALID_CREDENTIALS,
    "invalid_grant": AuthErrorCode.INVALID_CREDENTIALS,
    "user_already_exists": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "user already registered": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "email_exists": AuthErrorCode.EMAIL_ALREADY_EXISTS,
    "weak_password": AuthErrorCode.VALIDATION_ERROR,
    "validation_failed": AuthErrorCode.VALIDATION_ERROR,
    "bad_jwt": AuthErrorCode.SESSION_EXPIRED,
    "session_not_found": AuthErrorCode.SESSION_EXPIRED,
    "refresh_token_not_found": AuthErrorCode.SESSION_EXPIRED,
    "jwt expired": AuthErrorCode.SESSION_EXPIRED,
    "user_not_found": AuthErrorCode.USER_NOT_FOUND,
    "not_admin": AuthErrorCode.FORBIDDEN,
}
"""Substrings of Supabase error messages mapped to portal error codes.

Checked in insertion order against the lower-cased exception text.
"""


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Backend responses
# ---------------------------------------------------------------------------

class AuthSession(BaseModel):
    """Response of a successful login or registration.

    Attributes
    ----------
    token:
        Opaque credential string proving the session to the backend.
    user:
        The authenticated account's profile.
    """

    token: str
    user: UserProfile
