"""Tests for the admin view's background workers.

The widgets are not built; the worker methods run against a stand-in
``self`` with threads executed inline.
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

pytest.importorskip("customtkinter")

from portal.exceptions import AuthError  # noqa: E402
from portal.models.auth_models import AuthErrorCode  # noqa: E402
from portal.ui.views import admin_view  # noqa: E402
from portal.ui.views.admin_view import AdminView  # noqa: E402


class _InlineThread:
    def __init__(self, target, name=None, daemon=None):
        self._target = target

    def start(self):
        self._target()


@pytest.fixture
def view(monkeypatch):
    monkeypatch.setattr(admin_view, "threading", SimpleNamespace(Thread=_InlineThread))
    fake = Mock()
    fake.after.side_effect = lambda delay, callback, *args: callback(*args)
    return fake


class TestLoadUsers:
    def test_auth_error_is_shown(self, view):
        view._user_service.list_users.side_effect = AuthError(
            AuthErrorCode.FORBIDDEN, "Administrator access required.",
        )
        AdminView._load_users(view)
        view._show_status.assert_called_once_with("Administrator access required.", True)
        view._logger.exception.assert_not_called()

    def test_unexpected_error_is_logged_and_shown(self, view):
        """The view leaves the loading state even on an unforeseen failure."""
        view._user_service.list_users.side_effect = RuntimeError("boom")
        AdminView._load_users(view)
        view._logger.exception.assert_called_once()
        view._show_status.assert_called_once_with("Unexpected error: boom", True)
        view._handle_users_loaded.assert_not_called()

    def test_success(self, view):
        view._user_service.list_users.return_value = ["u1"]
        AdminView._load_users(view)
        view._handle_users_loaded.assert_called_once_with(["u1"])


class TestChangeRole:
    def test_unexpected_error_is_logged_and_shown(self, view):
        view._user_service.update_user_role.side_effect = RuntimeError("boom")
        AdminView._change_role(view, "u1", "admin")
        view._logger.exception.assert_called_once()
        view._handle_role_failure.assert_called_once_with("Unexpected error: boom")

    def test_auth_error_is_shown(self, view):
        view._user_service.update_user_role.side_effect = AuthError(
            AuthErrorCode.USER_NOT_FOUND, "User not found.",
        )
        AdminView._change_role(view, "missing", "admin")
        view._handle_role_failure.assert_called_once_with("User not found.")
