"""
Authentication Service.

Single orchestrator for every call the portal makes to the
authentication backend: login, registration, profile fetch and update,
session restore and sign-out.

Sits between the session context and the ``AuthBackend`` so that the
views remain thin form handlers.  Input is validated and normalised
here before any network round trip; backend failures are re-raised as
``AuthError`` with a fixed, user-presentable message.
"""

from __future__ import annotations

import re
from typing import Optional

from portal.exceptions import AuthError, RestoreError
from portal.logger import StructuredLogger
from portal.models.auth_models import AuthErrorCode, AuthSession, ValidationResult
from portal.models.user import ProfileUpdate, UserProfile
from portal.services.auth_backend import AuthBackend
from portal.services.base_service import BaseService


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

LOGIN_FAILED_MESSAGE: str = "Login failed. Please check your credentials."
REGISTRATION_FAILED_MESSAGE: str = "Registration failed. Please try again."
UPDATE_FAILED_MESSAGE: str = "Failed to update user details. Please try again."

# Profile fields that may be cleared to ``None`` rather than dropped.
_NULLABLE_FIELDS: frozenset[str] = frozenset({"vat_number"})


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AuthService(BaseService):
    """Centralised authentication service.

    Parameters
    ----------
    backend:
        Any ``AuthBackend`` implementation (mock or Supabase).
    logger:
        Structured JSON logger.
    password_min_length:
        Minimum password length enforced at registration.
    """

    def __init__(
        self,
        backend: AuthBackend,
        logger: StructuredLogger,
        password_min_length: int = 8,
    ) -> None:
        super().__init__(logger)
        self._backend: AuthBackend = backend
        self._password_min_length: int = password_min_length

    # ==================================================================
    # Validation
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Validate an email address against a simplified RFC 5322 regex.

        Returns
        -------
        ValidationResult
            ``is_valid=True`` if the email matches, otherwise a
            human-readable ``error_message``.
        """
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Email address is required.",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address.",
            )
        return ValidationResult(is_valid=True)

    def validate_password(self, password: str, registering: bool = False) -> ValidationResult:
        """Require a password; enforce the minimum length on registration."""
        if not password:
            return ValidationResult(
                is_valid=False,
                error_message="Password is required.",
            )
        if registering and len(password) < self._password_min_length:
            return ValidationResult(
                is_valid=False,
                error_message=(
                    f"Password must be at least {self._password_min_length} characters."
                ),
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def normalize_email(email: str) -> str:
        """Strip whitespace and lower-case *email*."""
        return email.strip().lower()

    # ==================================================================
    # Login / registration
    # ==================================================================

    def login(self, email: str, password: str) -> AuthSession:
        """Authenticate against the backend.

        Raises
        ------
        AuthError
            ``VALIDATION_ERROR`` with the specific message when the input
            is malformed; otherwise the backend's code with the fixed
            login failure message.
        """
        self._raise_if_invalid(self.validate_email(email))
        self._raise_if_invalid(self.validate_password(password))
        email = self.normalize_email(email)

        try:
            session = self._backend.login(email, password)
        except AuthError as exc:
            self._logger.warning(
                "Login failed for %s: %s", email, exc.message,
                extra={"event": "LOGIN_FAILED", "email": email, "error_code": str(exc.code)},
            )
            raise exc.with_message(LOGIN_FAILED_MESSAGE) from exc

        self._logger.info(
            "User authenticated: %s (role: %s)",
            session.user.name,
            session.user.role,
            extra={"event": "LOGIN", "email": session.user.email, "user_id": session.user.id},
        )
        return session

    def register(self, email: str, password: str) -> AuthSession:
        """Create an account and return its first session."""
        self._raise_if_invalid(self.validate_email(email))
        self._raise_if_invalid(self.validate_password(password, registering=True))
        email = self.normalize_email(email)

        try:
            session = self._backend.register(email, password)
        except AuthError as exc:
            self._logger.warning(
                "Registration failed for %s: %s", email, exc.message,
                extra={"event": "REGISTER_FAILED", "email": email, "error_code": str(exc.code)},
            )
            raise exc.with_message(REGISTRATION_FAILED_MESSAGE) from exc

        self._logger.info(
            "New account registered: %s",
            session.user.email,
            extra={"event": "REGISTER", "email": session.user.email, "user_id": session.user.id},
        )
        return session

    # ==================================================================
    # Profile
    # ==================================================================

    def fetch_profile(self, token: str) -> UserProfile:
        """Return the profile the backend associates with *token*."""
        return self._backend.fetch_profile(token)

    def update_profile(self, token: str, update: ProfileUpdate) -> UserProfile:
        """Submit the supplied fields and return the backend's merged profile.

        Blank strings are kept (they clear the field) except for ``name``
        and ``email``, which must stay non-empty.
        """
        changes = self._clean_changes(update)

        try:
            profile = self._backend.update_profile(token, changes)
        except AuthError as exc:
            self._logger.warning(
                "Profile update rejected: %s", exc.message,
                extra={"event": "PROFILE_UPDATE_FAILED", "error_code": str(exc.code)},
            )
            raise exc.with_message(UPDATE_FAILED_MESSAGE) from exc

        self._logger.info(
            "Profile updated for %s (fields: %s)",
            profile.email,
            ", ".join(sorted(changes)) or "none",
            extra={"event": "PROFILE_UPDATE", "user_id": profile.id},
        )
        return profile

    def restore_session(self, token: str) -> UserProfile:
        """Turn a persisted token back into a profile.

        Raises
        ------
        RestoreError
            When the backend rejects the token for any reason.
        """
        try:
            profile = self._backend.fetch_profile(token)
        except AuthError as exc:
            self._logger.info(
                "Stored session could not be restored: %s", exc.message,
                extra={"event": "RESTORE_FAILED", "error_code": str(exc.code)},
            )
            raise RestoreError("Stored session is no longer valid.", cause=exc) from exc

        self._logger.info(
            "Session restored for %s", profile.email,
            extra={"event": "RESTORE", "user_id": profile.id},
        )
        return profile

    def sign_out(self, token: Optional[str]) -> None:
        """Best-effort server-side revocation of *token*.

        Local state is cleared by the caller regardless, so failures are
        only logged.
        """
        if not token:
            return
        try:
            self._backend.sign_out(token)
        except AuthError as exc:
            self._logger.warning(
                "Server-side sign_out failed: %s", exc.message,
                extra={"event": "LOGOUT_REVOKE_FAILED", "error_code": str(exc.code)},
            )
            return
        self._logger.debug("Server-side session revoked.")

    # ==================================================================
    # Helpers
    # ==================================================================

    def _clean_changes(self, update: ProfileUpdate) -> dict[str, Optional[str]]:
        changes: dict[str, Optional[str]] = {}
        for field, value in update.changes().items():
            if value is None:
                if field in _NULLABLE_FIELDS:
                    changes[field] = None
                continue
            changes[field] = value.strip()

        if "name" in changes and not changes["name"]:
            raise AuthError(AuthErrorCode.VALIDATION_ERROR, "Name is required.")
        if "email" in changes:
            self._raise_if_invalid(self.validate_email(changes["email"] or ""))
            changes["email"] = self.normalize_email(changes["email"] or "")
        return changes

    @staticmethod
    def _raise_if_invalid(result: ValidationResult) -> None:
        if not result.is_valid:
            raise AuthError(
                AuthErrorCode.VALIDATION_ERROR,
                result.error_message or "Invalid input.",
            )
