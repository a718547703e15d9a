"""Tests for the in-memory authentication backend."""

import time

import pytest

from portal.exceptions import AuthError
from portal.models.auth_models import AuthErrorCode
from portal.models.enums import UserRole
from portal.services.auth_backend import DEMO_PASSWORD, AuthBackend, MockAuthBackend

from .conftest import ADMIN_EMAIL, PASSWORD


class TestMockBackendContract:
    """The mock satisfies the backend protocol."""

    def test_is_auth_backend(self, backend):
        assert isinstance(backend, AuthBackend)


class TestLogin:
    """Test login behaviour."""

    def test_unknown_email_is_provisioned(self, backend):
        """First login creates the account with the canned profile."""
        session = backend.login("new@example.com", PASSWORD)
        assert session.token
        assert session.user.email == "new@example.com"
        assert session.user.name == "John Doe"
        assert session.user.address == "123 Main St"
        assert session.user.phone_number == "555-1234"
        assert session.user.role == UserRole.USER

    def test_password_is_remembered(self, backend):
        """A later login with another password is rejected."""
        backend.login("new@example.com", PASSWORD)
        with pytest.raises(AuthError) as exc_info:
            backend.login("new@example.com", "something-else")
        assert exc_info.value.code == AuthErrorCode.INVALID_CREDENTIALS

    def test_same_password_logs_in_again(self, backend):
        first = backend.login("new@example.com", PASSWORD)
        second = backend.login("new@example.com", PASSWORD)
        assert first.user.id == second.user.id
        assert first.token != second.token

    def test_admin_email_gets_admin_role(self, backend):
        session = backend.login(ADMIN_EMAIL, PASSWORD)
        assert session.user.role == UserRole.ADMIN

    def test_demo_accounts_are_seeded(self, backend):
        session = backend.login("user2@example.com", DEMO_PASSWORD)
        assert session.user.name == "User Two"
        assert session.user.role == UserRole.ADMIN

    def test_latency_is_applied(self, logger):
        """Every call waits for the configured latency."""
        slow = MockAuthBackend(logger, latency_s=0.05, seed_demo_accounts=False, hash_iterations=1_000)
        started = time.monotonic()
        slow.login("a@b.com", PASSWORD)
        assert time.monotonic() - started >= 0.05


class TestRegister:
    """Test registration behaviour."""

    def test_register_new_account(self, backend):
        session = backend.register("a@b.com", PASSWORD)
        assert session.user.email == "a@b.com"
        assert session.user.role == UserRole.USER

    def test_register_existing_email(self, backend):
        backend.register("a@b.com", PASSWORD)
        with pytest.raises(AuthError) as exc_info:
            backend.register("a@b.com", PASSWORD)
        assert exc_info.value.code == AuthErrorCode.EMAIL_ALREADY_EXISTS


class TestProfile:
    """Test profile fetch and update."""

    def test_fetch_profile_matches_login(self, backend):
        session = backend.login("a@b.com", PASSWORD)
        assert backend.fetch_profile(session.token) == session.user

    def test_unknown_token(self, backend):
        with pytest.raises(AuthError) as exc_info:
            backend.fetch_profile("bogus")
        assert exc_info.value.code == AuthErrorCode.SESSION_EXPIRED

    def test_update_merges_supplied_fields(self, backend):
        session = backend.login("a@b.com", PASSWORD)
        updated = backend.update_profile(session.token, {"name": "Alice", "vat_number": "ES123"})
        assert updated.name == "Alice"
        assert updated.vat_number == "ES123"
        assert updated.address == session.user.address
        assert updated.role == session.user.role

    def test_update_email_moves_account(self, backend):
        """After an email change the account answers to the new address."""
        session = backend.login("a@b.com", PASSWORD)
        backend.update_profile(session.token, {"email": "new@b.com"})
        assert backend.login("new@b.com", PASSWORD).user.id == session.user.id

    def test_update_email_conflict(self, backend):
        session = backend.login("a@b.com", PASSWORD)
        with pytest.raises(AuthError) as exc_info:
            backend.update_profile(session.token, {"email": "user1@example.com"})
        assert exc_info.value.code == AuthErrorCode.EMAIL_ALREADY_EXISTS
        assert backend.fetch_profile(session.token).email == "a@b.com"

    def test_sign_out_revokes_token(self, backend):
        session = backend.login("a@b.com", PASSWORD)
        backend.sign_out(session.token)
        with pytest.raises(AuthError):
            backend.fetch_profile(session.token)


class TestAdministration:
    """Test admin-only operations."""

    def test_list_users_requires_admin(self, backend):
        session = backend.login("a@b.com", PASSWORD)
        with pytest.raises(AuthError) as exc_info:
            backend.list_users(session.token)
        assert exc_info.value.code == AuthErrorCode.FORBIDDEN

    def test_list_users_as_admin(self, backend):
        session = backend.login(ADMIN_EMAIL, PASSWORD)
        emails = {user.email for user in backend.list_users(session.token)}
        assert {"user1@example.com", "user2@example.com", "user3@example.com", ADMIN_EMAIL} <= emails

    def test_update_user_role(self, backend):
        admin = backend.login(ADMIN_EMAIL, PASSWORD)
        target = backend.login("a@b.com", PASSWORD)
        updated = backend.update_user_role(admin.token, target.user.id, UserRole.ADMIN)
        assert updated.role == UserRole.ADMIN
        assert backend.fetch_profile(target.token).role == UserRole.ADMIN

    def test_update_unknown_user(self, backend):
        admin = backend.login(ADMIN_EMAIL, PASSWORD)
        with pytest.raises(AuthError) as exc_info:
            backend.update_user_role(admin.token, "nope", UserRole.USER)
        assert exc_info.value.code == AuthErrorCode.USER_NOT_FOUND
