"""Tests for the session context state machine."""

from unittest.mock import Mock

import pytest

from portal.auth import SessionContext
from portal.exceptions import AuthError
from portal.models.auth_models import AuthErrorCode
from portal.models.enums import SessionState, UserRole
from portal.models.user import ProfileUpdate, UserProfile

from .conftest import ADMIN_EMAIL, PASSWORD


class TestInitialState:
    """A fresh context is anonymous."""

    def test_anonymous(self, session):
        assert session.state == SessionState.ANONYMOUS
        assert session.current_user is None
        assert session.token is None
        assert not session.is_authenticated
        assert not session.is_admin

    def test_require_user_raises(self, session):
        with pytest.raises(AuthError) as exc_info:
            session.require_user()
        assert exc_info.value.code == AuthErrorCode.NOT_AUTHENTICATED


class TestLoginAndRegister:
    """Test the transitions into AUTHENTICATED."""

    def test_login_persists_token(self, session, token_store):
        user = session.login("a@b.com", PASSWORD)
        assert session.state == SessionState.AUTHENTICATED
        assert session.current_user == user
        assert token_store.load() == session.token

    def test_register_sets_user_role(self, session):
        """A fresh registration is a plain user."""
        user = session.register("a@b.com", PASSWORD)
        assert user.role == UserRole.USER
        assert session.is_authenticated
        assert not session.is_admin

    def test_registered_user_is_kept_out_of_admin(self, session, registry):
        session.register("a@b.com", PASSWORD)
        assert registry.resolve("/admin", session.current_user).path == "/dashboard"

    def test_admin_login(self, session):
        session.login(ADMIN_EMAIL, PASSWORD)
        assert session.is_admin

    def test_failed_login_stays_anonymous(self, session, token_store):
        session.login("a@b.com", PASSWORD)
        session.logout()
        with pytest.raises(AuthError):
            session.login("a@b.com", "wrong-password")
        assert session.state == SessionState.ANONYMOUS
        assert token_store.load() is None


class TestLogout:
    """Test logout."""

    def test_logout_clears_state_and_store(self, session, token_store):
        session.login("a@b.com", PASSWORD)
        token = session.token
        assert session.logout() == token
        assert session.state == SessionState.ANONYMOUS
        assert session.token is None
        assert token_store.load() is None

    def test_logout_is_idempotent(self, session):
        session.login("a@b.com", PASSWORD)
        session.logout()
        assert session.logout() is None
        assert session.state == SessionState.ANONYMOUS


class TestRestore:
    """Test startup restore from the token store."""

    def test_restore_without_token(self, session):
        assert session.restore() is None
        assert session.state == SessionState.ANONYMOUS

    def test_restore_valid_token(self, session, auth_service, token_store, logger):
        user = session.login("a@b.com", PASSWORD)

        restarted = SessionContext(auth_service, token_store, logger)
        assert restarted.restore() == user
        assert restarted.current_user == user
        assert restarted.token == session.token

    def test_restore_rejected_token_clears_store(self, session, token_store):
        """A stale token leaves the context anonymous with an empty store."""
        token_store.save("stale-token")
        assert session.restore() is None
        assert session.state == SessionState.ANONYMOUS
        assert token_store.load() is None

    def test_restore_after_backend_restart(self, session, token_store, logger, auth_service):
        """Tokens issued by a previous backend instance are rejected silently."""
        from portal.services.auth_backend import MockAuthBackend
        from portal.services.auth_service import AuthService

        session.login("a@b.com", PASSWORD)
        fresh_backend = MockAuthBackend(logger, latency_s=0, hash_iterations=1_000)
        restarted = SessionContext(AuthService(fresh_backend, logger), token_store, logger)
        assert restarted.restore() is None
        assert token_store.load() is None


class TestUpdateUserDetails:
    """Test confirmed profile updates."""

    def test_requires_authentication(self, session):
        with pytest.raises(AuthError) as exc_info:
            session.update_user_details(ProfileUpdate(name="Alice"))
        assert exc_info.value.code == AuthErrorCode.NOT_AUTHENTICATED

    def test_merges_only_supplied_fields(self, session):
        before = session.login("a@b.com", PASSWORD)
        after = session.update_user_details(ProfileUpdate(name="Alice", location="Madrid"))
        assert after.name == "Alice"
        assert after.location == "Madrid"
        assert after.address == before.address
        assert after.phone_number == before.phone_number
        assert session.current_user == after

    def test_failed_update_leaves_state_untouched(self, session):
        before = session.login("a@b.com", PASSWORD)
        with pytest.raises(AuthError):
            session.update_user_details(ProfileUpdate(email="user1@example.com"))
        assert session.current_user == before

    def test_logout_during_update_discards_result(self, auth_service, token_store, logger):
        """A response arriving after logout does not resurrect the session."""
        context = SessionContext(auth_service, token_store, logger)
        context.login("a@b.com", PASSWORD)

        real_update = auth_service.update_profile

        def update_then_logout(token, update):
            result = real_update(token, update)
            context.logout()
            return result

        auth_service.update_profile = update_then_logout
        with pytest.raises(AuthError) as exc_info:
            context.update_user_details(ProfileUpdate(name="Alice"))
        assert exc_info.value.code == AuthErrorCode.NOT_AUTHENTICATED
        assert context.current_user is None


class TestReplaceProfile:
    """Test adopting a profile changed elsewhere."""

    def test_replaces_same_account(self, session):
        listener = Mock()
        user = session.login("a@b.com", PASSWORD)
        session.subscribe(listener)

        promoted = user.model_copy(update={"role": UserRole.ADMIN})
        assert session.replace_profile(promoted) is True
        assert session.is_admin
        listener.assert_called_once_with(promoted)

    def test_ignores_other_account(self, session):
        user = session.login("a@b.com", PASSWORD)
        stranger = user.model_copy(update={"id": "someone-else"})
        assert session.replace_profile(stranger) is False
        assert session.current_user == user

    def test_ignored_while_anonymous(self, session):
        profile = UserProfile(id="u1", email="a@b.com", name="A")
        assert session.replace_profile(profile) is False
        assert session.current_user is None


class TestListeners:
    """Test transition notifications."""

    def test_notified_on_each_transition(self, session):
        listener = Mock()
        session.subscribe(listener)

        user = session.login("a@b.com", PASSWORD)
        updated = session.update_user_details(ProfileUpdate(name="Alice"))
        session.logout()

        assert [call.args[0] for call in listener.call_args_list] == [user, updated, None]

    def test_unsubscribe(self, session):
        listener = Mock()
        unsubscribe = session.subscribe(listener)
        unsubscribe()
        unsubscribe()
        session.login("a@b.com", PASSWORD)
        listener.assert_not_called()

    def test_failing_listener_does_not_block_others(self, session):
        broken = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        session.subscribe(broken)
        session.subscribe(healthy)

        session.login("a@b.com", PASSWORD)

        healthy.assert_called_once()
        assert session.is_authenticated

    def test_listener_may_read_state(self, session):
        """Listeners run outside the lock and see the new state."""
        seen = []
        session.subscribe(lambda user: seen.append((user, session.state)))
        session.login("a@b.com", PASSWORD)
        assert seen[0][1] == SessionState.AUTHENTICATED
