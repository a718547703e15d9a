"""
Portal exceptions.

``AuthError`` is the only error the views ever display; its
``message`` is always safe to show to the user.
"""

from __future__ import annotations

from typing import Optional

from portal.models.auth_models import AuthErrorCode


class PortalError(Exception):
    """Base exception for portal operations."""


class AuthError(PortalError):
    """A credential, validation or backend failure.

    Parameters
    ----------
    code:
        Structured error category.
    message:
        Human-readable description shown inline by the views.
    """

    def __init__(self, code: AuthErrorCode, message: str) -> None:
        super().__init__(message)
        self.code: AuthErrorCode = code
        self.message: str = message

    def with_message(self, message: str) -> "AuthError":
        """Return a copy of this error carrying a different user-facing message."""
        error = AuthError(self.code, message)
        error.__cause__ = self
        return error


class RestoreError(PortalError):
    """A persisted token could not be turned back into a session."""

    def __init__(self, message: str, cause: Optional[AuthError] = None) -> None:
        super().__init__(message)
        self.cause: Optional[AuthError] = cause


class RouteError(PortalError):
    """Routing is misconfigured (unknown target or redirect loop)."""
