"""
Session Context.

Provides an injectable ``SessionContext`` that owns the authenticated
user and the session token for the lifetime of the application, and
persists the token through ``TokenStore`` so the session survives a
restart.

States::

    ANONYMOUS --login/register/restore--> AUTHENTICATED(profile)
    AUTHENTICATED --logout--> ANONYMOUS
    AUTHENTICATED --update_user_details--> AUTHENTICATED(merged profile)

Usage::

    session = SessionContext(auth_service, token_store, logger)
    session.subscribe(lambda user: print("now:", user))
    session.restore()
    session.login("a@b.com", "secret-pass")
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Callable, Optional

from portal.exceptions import AuthError, RestoreError
from portal.logger import StructuredLogger
from portal.models.auth_models import AuthErrorCode, AuthSession
from portal.models.enums import SessionState
from portal.models.user import ProfileUpdate, UserProfile

if TYPE_CHECKING:
    from portal.services.auth_service import AuthService
    from portal.services.token_store import TokenStore

SessionListener = Callable[[Optional[UserProfile]], None]


class SessionContext:
    """Injectable holder for the current session.

    Backend calls are made without holding the lock, so they may run on
    worker threads; state changes are serialised by an ``RLock`` and
    listeners are notified after the lock is released.

    Parameters
    ----------
    auth_service:
        Performs the backend calls.
    token_store:
        Persists the token across restarts.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        auth_service: AuthService,
        token_store: TokenStore,
        logger: StructuredLogger,
    ) -> None:
        self._auth_service = auth_service
        self._token_store = token_store
        self._logger = logger
        self._lock: threading.RLock = threading.RLock()
        self._current_user: Optional[UserProfile] = None
        self._token: Optional[str] = None
        self._listeners: list[SessionListener] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> Optional[UserProfile]:
        with self._lock:
            return self._current_user

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently logged in."""
        with self._lock:
            return self._current_user is not None

    @property
    def is_admin(self) -> bool:
        with self._lock:
            return self._current_user is not None and self._current_user.is_admin

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._current_user is None:
                return SessionState.ANONYMOUS
            return SessionState.AUTHENTICATED

    def require_user(self) -> UserProfile:
        """Return the authenticated user.

        Raises:
            AuthError: ``NOT_AUTHENTICATED`` if nobody is logged in.
        """
        with self._lock:
            if self._current_user is None:
                raise AuthError(
                    AuthErrorCode.NOT_AUTHENTICATED,
                    "Authentication required. Please log in.",
                )
            return self._current_user

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call *listener* with the new user after every transition.

        Returns a callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user: Optional[UserProfile]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(user)
            except Exception:
                self._logger.exception("Session listener %r failed.", listener)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def restore(self) -> Optional[UserProfile]:
        """Re-establish the session from the persisted token, if any.

        A rejected token is cleared and the context stays anonymous;
        no error reaches the caller.
        """
        token = self._token_store.load()
        if token is None:
            return None

        try:
            profile = self._auth_service.restore_session(token)
        except RestoreError:
            self._token_store.clear()
            return None

        self._become_authenticated(AuthSession(token=token, user=profile), persist=False)
        return profile

    def login(self, email: str, password: str) -> UserProfile:
        """Authenticate and persist the session.  Errors propagate unchanged."""
        session = self._auth_service.login(email, password)
        self._become_authenticated(session)
        return session.user

    def register(self, email: str, password: str) -> UserProfile:
        """Create an account and sign straight into it."""
        session = self._auth_service.register(email, password)
        self._become_authenticated(session)
        return session.user

    def logout(self) -> Optional[str]:
        """End the session locally.  Idempotent.

        Returns the token that was active, so the caller can revoke it
        server-side without blocking the UI.
        """
        with self._lock:
            previous_user = self._current_user
            previous_token = self._token
            self._current_user = None
            self._token = None
        self._token_store.clear()

        if previous_user is None:
            return None

        self._logger.info(
            "User logged out: %s", previous_user.email,
            extra={"event": "LOGOUT", "email": previous_user.email, "user_id": previous_user.id},
        )
        self._notify(None)
        return previous_token

    def update_user_details(self, update: ProfileUpdate) -> UserProfile:
        """Apply *update* once the backend has accepted it.

        Local state is only replaced with the profile the backend
        returns; on failure it is left untouched and the error
        propagates.

        Raises:
            AuthError: ``NOT_AUTHENTICATED`` when called while anonymous
                or when the session ended before the backend answered.
        """
        with self._lock:
            token = self._token
        if token is None:
            raise AuthError(
                AuthErrorCode.NOT_AUTHENTICATED,
                "Authentication required. Please log in.",
            )

        profile = self._auth_service.update_profile(token, update)

        with self._lock:
            if self._token != token:
                # Logged out (or switched account) while the call was in flight.
                raise AuthError(
                    AuthErrorCode.NOT_AUTHENTICATED,
                    "The session ended before the update completed.",
                )
            self._current_user = profile
        self._notify(profile)
        return profile

    def replace_profile(self, profile: UserProfile) -> bool:
        """Adopt a newer copy of the signed-in account's profile.

        For changes made outside ``update_user_details``, such as an
        admin editing their own role.  Returns ``False`` and leaves the
        state alone when nobody is signed in or *profile* belongs to
        another account.
        """
        with self._lock:
            if self._current_user is None or self._current_user.id != profile.id:
                return False
            self._current_user = profile
        self._notify(profile)
        return True

    def _become_authenticated(self, session: AuthSession, persist: bool = True) -> None:
        with self._lock:
            self._current_user = session.user
            self._token = session.token
        if persist:
            self._token_store.save(session.token)
        self._notify(session.user)
