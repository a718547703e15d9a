"""
Authentication Backend Contract and Mock Implementation.

``AuthBackend`` is the contract any remote authentication collaborator
must satisfy.  ``MockAuthBackend`` fulfils it in memory with a fixed
artificial latency and canned profile data, so the portal runs without
a server.

Logical endpoints::

    login          {email, password}        -> {token, user}
    register       {email, password}        -> {token, user}
    fetch_profile  {token}                  -> {user}
    update_profile {token, ...fields}       -> {user}
    sign_out       {token}
    list_users     {token}                  -> [user]        (admin)
    update_role    {token, user_id, role}   -> {user}        (admin)
"""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
import threading
import time
import uuid
from typing import Optional, Protocol, runtime_checkable

from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.models.auth_models import AuthErrorCode, AuthSession
from portal.models.enums import UserRole
from portal.models.user import UserProfile

DEMO_PASSWORD: str = "demo-password"

# Profile data handed to every account the mock backend provisions.
_CANNED_PROFILE: dict[str, str] = {
    "name": "John Doe",
    "address": "123 Main St",
    "billing_address": "123 Main St",
    "phone_number": "555-1234",
    "location": "New York, NY",
    "vat_number": "",
}

_DEMO_ACCOUNTS: tuple[tuple[str, str, UserRole], ...] = (
    ("user1@example.com", "User One", UserRole.USER),
    ("user2@example.com", "User Two", UserRole.ADMIN),
    ("user3@example.com", "User Three", UserRole.USER),
)


@runtime_checkable
class AuthBackend(Protocol):
    """Contract every authentication backend must satisfy.

    All methods block until the collaborator answers and raise
    :class:`~portal.exceptions.AuthError` on failure.
    """

    def login(self, email: str, password: str) -> AuthSession: ...

    def register(self, email: str, password: str) -> AuthSession: ...

    def fetch_profile(self, token: str) -> UserProfile: ...

    def update_profile(self, token: str, changes: dict[str, Optional[str]]) -> UserProfile: ...

    def sign_out(self, token: str) -> None: ...

    def list_users(self, token: str) -> list[UserProfile]: ...

    def update_user_role(self, token: str, user_id: str, role: UserRole) -> UserProfile: ...


class _Account:
    """Mock directory entry: a profile plus its password hash."""

    __slots__ = ("profile", "password_hash", "password_salt")

    def __init__(self, profile: UserProfile, password_hash: str, password_salt: str) -> None:
        self.profile = profile
        self.password_hash = password_hash
        self.password_salt = password_salt


class MockAuthBackend:
    """In-memory stand-in for the remote authentication API.

    Behaviour:
    - Login with an unknown email provisions an account with the canned
      profile and remembers the password; later logins must match it.
    - Registration of a known email fails with ``EMAIL_ALREADY_EXISTS``.
    - Emails listed in *admin_emails* are provisioned as admins.
    - Tokens are random strings; unknown tokens fail with
      ``SESSION_EXPIRED``.

    Parameters
    ----------
    logger:
        Structured logger instance.
    latency_s:
        Artificial delay applied to every call.
    admin_emails:
        Normalised emails that receive the admin role on provisioning.
    seed_demo_accounts:
        Whether to pre-populate the three demo accounts.
    hash_iterations:
        PBKDF2 iterations for stored password hashes.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        latency_s: float = 1.0,
        admin_emails: frozenset[str] = frozenset(),
        seed_demo_accounts: bool = True,
        hash_iterations: int = 100_000,
    ) -> None:
        self._logger = logger
        self._latency_s = latency_s
        self._admin_emails = admin_emails
        self._hash_iterations = hash_iterations
        self._lock = threading.Lock()
        self._accounts: dict[str, _Account] = {}  # email -> account
        self._tokens: dict[str, str] = {}  # token -> user id

        if seed_demo_accounts:
            for email, name, role in _DEMO_ACCOUNTS:
                account = self._new_account(email, DEMO_PASSWORD, role=role)
                account.profile.name = name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthSession:
        self._simulate_latency()
        with self._lock:
            account = self._accounts.get(email)
            if account is None:
                account = self._new_account(email, password)
                self._logger.info(
                    "Mock backend provisioned %s on first login.", email,
                    extra={"event": "MOCK_PROVISION"},
                )
            elif not self._verify_password(account, password):
                raise AuthError(
                    AuthErrorCode.INVALID_CREDENTIALS,
                    "Incorrect email or password.",
                )
            return AuthSession(token=self._issue_token(account), user=account.profile.model_copy())

    def register(self, email: str, password: str) -> AuthSession:
        self._simulate_latency()
        with self._lock:
            if email in self._accounts:
                raise AuthError(
                    AuthErrorCode.EMAIL_ALREADY_EXISTS,
                    "An account with this email already exists. Try signing in.",
                )
            account = self._new_account(email, password)
            return AuthSession(token=self._issue_token(account), user=account.profile.model_copy())

    def fetch_profile(self, token: str) -> UserProfile:
        self._simulate_latency()
        with self._lock:
            return self._account_for_token(token).profile.model_copy()

    def update_profile(self, token: str, changes: dict[str, Optional[str]]) -> UserProfile:
        self._simulate_latency()
        with self._lock:
            account = self._account_for_token(token)
            old_email = account.profile.email
            new_email = changes.get("email") or old_email

            if new_email != old_email and new_email in self._accounts:
                raise AuthError(
                    AuthErrorCode.EMAIL_ALREADY_EXISTS,
                    "An account with this email already exists.",
                )

            account.profile = account.profile.model_copy(update={**changes, "email": new_email})
            if new_email != old_email:
                del self._accounts[old_email]
                self._accounts[new_email] = account
            return account.profile.model_copy()

    def sign_out(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def list_users(self, token: str) -> list[UserProfile]:
        self._simulate_latency()
        with self._lock:
            self._require_admin(token)
            return [account.profile.model_copy() for account in self._accounts.values()]

    def update_user_role(self, token: str, user_id: str, role: UserRole) -> UserProfile:
        self._simulate_latency()
        with self._lock:
            self._require_admin(token)
            account = self._account_by_id(user_id)
            if account is None:
                raise AuthError(AuthErrorCode.USER_NOT_FOUND, "User not found.")
            account.profile = account.profile.model_copy(update={"role": role})
            return account.profile.model_copy()

    # ------------------------------------------------------------------
    # Private helpers (callers hold ``self._lock``)
    # ------------------------------------------------------------------

    def _simulate_latency(self) -> None:
        if self._latency_s > 0:
            time.sleep(self._latency_s)

    def _new_account(
        self,
        email: str,
        password: str,
        role: Optional[UserRole] = None,
    ) -> _Account:
        if role is None:
            role = UserRole.ADMIN if email in self._admin_emails else UserRole.USER
        profile = UserProfile(
            id=str(uuid.uuid4()),
            email=email,
            role=role,
            **_CANNED_PROFILE,
        )
        salt = os.urandom(16)
        account = _Account(
            profile=profile,
            password_hash=self._hash(password, salt),
            password_salt=salt.hex(),
        )
        self._accounts[email] = account
        return account

    def _hash(self, password: str, salt: bytes) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, iterations=self._hash_iterations,
        ).hex()

    def _verify_password(self, account: _Account, password: str) -> bool:
        computed = self._hash(password, bytes.fromhex(account.password_salt))
        return hmac.compare_digest(computed, account.password_hash)

    def _issue_token(self, account: _Account) -> str:
        token = secrets.token_urlsafe(32)
        self._tokens[token] = account.profile.id
        return token

    def _account_by_id(self, user_id: str) -> Optional[_Account]:
        for account in self._accounts.values():
            if account.profile.id == user_id:
                return account
        return None

    def _account_for_token(self, token: str) -> _Account:
        user_id = self._tokens.get(token)
        account = self._account_by_id(user_id) if user_id is not None else None
        if account is None:
            raise AuthError(
                AuthErrorCode.SESSION_EXPIRED,
                "Your session has expired. Please sign in again.",
            )
        return account

    def _require_admin(self, token: str) -> _Account:
        account = self._account_for_token(token)
        if account.profile.role != UserRole.ADMIN:
            raise AuthError(AuthErrorCode.FORBIDDEN, "Administrator access required.")
        return account
