"""
Supabase Authentication Backend.

Implements the ``AuthBackend`` contract against a Supabase project:

- Credentials go through Supabase Auth (``sign_in_with_password``,
  ``sign_up``, ``get_user``, ``update_user``, ``sign_out``).
- Editable profile fields live in ``user_metadata``.
- The role lives in ``app_metadata`` (not user-writable), so only the
  service-role client can change it.

The opaque portal token is a JSON bundle of the Supabase access and
refresh tokens; the refresh token is needed to re-establish the client
session before ``update_user``.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Optional

from supabase import Client as SupabaseClient
from supabase import create_client

from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.models.auth_models import SUPABASE_ERROR_MAP, AuthErrorCode, AuthSession
from portal.models.enums import UserRole
from portal.models.user import EDITABLE_FIELDS, UserProfile

_GENERIC_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Incorrect email or password.",
    AuthErrorCode.EMAIL_ALREADY_EXISTS: "An account with this email already exists. Try signing in.",
    AuthErrorCode.VALIDATION_ERROR: "The server rejected the submitted details.",
    AuthErrorCode.SESSION_EXPIRED: "Your session has expired. Please sign in again.",
    AuthErrorCode.USER_NOT_FOUND: "User not found.",
    AuthErrorCode.FORBIDDEN: "Administrator access required.",
    AuthErrorCode.NETWORK_ERROR: "Cannot reach the server. Check your internet connection.",
    AuthErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Please try again later.",
}


def encode_token(access_token: str, refresh_token: str) -> str:
    """Bundle Supabase tokens into one opaque portal token."""
    return json.dumps({"access_token": access_token, "refresh_token": refresh_token})


def decode_token(token: str) -> tuple[str, str]:
    """Split a portal token back into ``(access_token, refresh_token)``.

    Raises:
        AuthError: ``SESSION_EXPIRED`` when the token is not a bundle.
    """
    try:
        data = json.loads(token)
        return str(data["access_token"]), str(data["refresh_token"])
    except (ValueError, TypeError, KeyError) as exc:
        raise AuthError(
            AuthErrorCode.SESSION_EXPIRED,
            _GENERIC_MESSAGES[AuthErrorCode.SESSION_EXPIRED],
        ) from exc


class SupabaseAuthBackend:
    """Supabase-backed implementation of ``AuthBackend``.

    Parameters
    ----------
    url:
        The Supabase project URL.
    anon_key:
        The project's anonymous key.
    logger:
        Structured logger instance.
    service_role_key:
        Service-role key for admin operations; empty disables them.
    client, admin_client:
        Pre-built clients (tests); created lazily from the keys otherwise.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        logger: StructuredLogger,
        service_role_key: str = "",
        client: Optional[SupabaseClient] = None,
        admin_client: Optional[SupabaseClient] = None,
    ) -> None:
        self._url = url
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._logger = logger
        self._client = client
        self._admin_client = admin_client
        # The auth client keeps per-session state; one call at a time.
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # AuthBackend
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthSession:
        auth = self._auth()
        with self._lock:
            try:
                response = auth.sign_in_with_password(
                    {"email": email, "password": password}
                )
            except Exception as exc:
                raise self._classify(exc, "login") from exc
            return self._session_from_response(response)

    def register(self, email: str, password: str) -> AuthSession:
        auth = self._auth()
        with self._lock:
            try:
                response = auth.sign_up({"email": email, "password": password})
            except Exception as exc:
                raise self._classify(exc, "register") from exc
            if response.session is None:
                raise AuthError(
                    AuthErrorCode.VALIDATION_ERROR,
                    "Check your inbox to confirm your email address, then sign in.",
                )
            return self._session_from_response(response)

    def fetch_profile(self, token: str) -> UserProfile:
        access_token, _ = decode_token(token)
        auth = self._auth()
        with self._lock:
            try:
                response = auth.get_user(access_token)
            except Exception as exc:
                raise self._classify(exc, "fetch_profile") from exc
            if response is None or response.user is None:
                raise AuthError(
                    AuthErrorCode.SESSION_EXPIRED,
                    _GENERIC_MESSAGES[AuthErrorCode.SESSION_EXPIRED],
                )
            return self.profile_from_user(response.user)

    def update_profile(self, token: str, changes: dict[str, Optional[str]]) -> UserProfile:
        access_token, refresh_token = decode_token(token)
        attributes: dict[str, Any] = {
            "data": {key: value for key, value in changes.items() if key != "email"},
        }
        if changes.get("email"):
            attributes["email"] = changes["email"]

        auth = self._auth()
        with self._lock:
            try:
                auth.set_session(access_token, refresh_token)
                response = auth.update_user(attributes)
            except Exception as exc:
                raise self._classify(exc, "update_profile") from exc
            return self.profile_from_user(response.user)

    def sign_out(self, token: str) -> None:
        access_token, refresh_token = decode_token(token)
        auth = self._auth()
        with self._lock:
            try:
                auth.set_session(access_token, refresh_token)
                auth.sign_out()
            except Exception as exc:
                raise self._classify(exc, "sign_out") from exc

    def list_users(self, token: str) -> list[UserProfile]:
        self._require_admin(token)
        admin = self._admin()
        with self._lock:
            try:
                users = admin.auth.admin.list_users()
            except Exception as exc:
                raise self._classify(exc, "list_users") from exc
            return [self.profile_from_user(user) for user in users]

    def update_user_role(self, token: str, user_id: str, role: UserRole) -> UserProfile:
        self._require_admin(token)
        admin = self._admin()
        with self._lock:
            try:
                response = admin.auth.admin.update_user_by_id(
                    user_id, {"app_metadata": {"role": str(role)}},
                )
            except Exception as exc:
                raise self._classify(exc, "update_user_role") from exc
            return self.profile_from_user(response.user)

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def profile_from_user(self, user: Any) -> UserProfile:
        """Build a ``UserProfile`` from a Supabase ``User`` object."""
        metadata: dict[str, Any] = getattr(user, "user_metadata", None) or {}
        app_metadata: dict[str, Any] = getattr(user, "app_metadata", None) or {}
        email: str = user.email or ""

        raw_role = app_metadata.get("role", UserRole.USER)
        try:
            role = UserRole(raw_role)
        except ValueError:
            self._logger.warning(
                "Unknown role '%s' for user %s; treating as '%s'.",
                raw_role, user.id, UserRole.USER,
            )
            role = UserRole.USER

        fields: dict[str, Any] = {
            key: metadata[key]
            for key in EDITABLE_FIELDS
            if key not in ("email", "name") and metadata.get(key) is not None
        }
        return UserProfile(
            id=str(user.id),
            email=email,
            name=metadata.get("name") or email.split("@")[0],
            role=role,
            **fields,
        )

    def _session_from_response(self, response: Any) -> AuthSession:
        session = response.session
        return AuthSession(
            token=encode_token(session.access_token, session.refresh_token),
            user=self.profile_from_user(response.user),
        )

    def _classify(self, exc: Exception, operation: str) -> AuthError:
        """Map a Supabase or network exception to an ``AuthError``."""
        if isinstance(exc, (ConnectionError, TimeoutError)):
            code = AuthErrorCode.NETWORK_ERROR
        else:
            error_str = str(exc).lower()
            code = next(
                (mapped for key, mapped in SUPABASE_ERROR_MAP.items() if key in error_str),
                AuthErrorCode.UNKNOWN_ERROR,
            )
        self._logger.warning(
            "Supabase %s failed (%s): %s", operation, code, exc,
            extra={"event": "SUPABASE_ERROR", "error_code": str(code)},
        )
        return AuthError(code, _GENERIC_MESSAGES[code])

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def _auth(self) -> Any:
        with self._lock:
            if self._client is None:
                if not self._url or not self._anon_key:
                    raise AuthError(
                        AuthErrorCode.NETWORK_ERROR,
                        "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.",
                    )
                self._client = create_client(self._url, self._anon_key)
            return self._client.auth

    def _admin(self) -> SupabaseClient:
        with self._lock:
            if self._admin_client is None:
                if not self._url or not self._service_role_key:
                    raise AuthError(
                        AuthErrorCode.FORBIDDEN,
                        "User administration requires SUPABASE_SERVICE_ROLE_KEY.",
                    )
                self._admin_client = create_client(self._url, self._service_role_key)
            return self._admin_client

    def _require_admin(self, token: str) -> UserProfile:
        profile = self.fetch_profile(token)
        if profile.role != UserRole.ADMIN:
            raise AuthError(AuthErrorCode.FORBIDDEN, _GENERIC_MESSAGES[AuthErrorCode.FORBIDDEN])
        return profile
