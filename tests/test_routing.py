"""Tests for route resolution and access guards."""

from unittest.mock import Mock

import pytest

from portal.exceptions import AuthError, RouteError
from portal.models.auth_models import AuthErrorCode
from portal.models.enums import Capability, UserRole
from portal.models.user import UserProfile
from portal.routing import (
    ADMIN_PATH,
    DASHBOARD_PATH,
    LOGIN_PATH,
    REGISTER_PATH,
    ROOT_PATH,
    RouteRegistry,
    check_access,
    require_capability,
)

USER = UserProfile(id="u1", email="a@b.com", name="A", role=UserRole.USER)
ADMIN = UserProfile(id="u2", email="admin@example.com", name="Admin", role=UserRole.ADMIN)


class TestCheckAccess:
    """Test the single access decision."""

    @pytest.mark.parametrize(
        ("user", "capability", "expected"),
        [
            (None, Capability.PUBLIC, None),
            (USER, Capability.PUBLIC, None),
            (None, Capability.AUTHENTICATED, LOGIN_PATH),
            (USER, Capability.AUTHENTICATED, None),
            (None, Capability.ADMIN, LOGIN_PATH),
            (USER, Capability.ADMIN, DASHBOARD_PATH),
            (ADMIN, Capability.ADMIN, None),
        ],
    )
    def test_decisions(self, user, capability, expected):
        assert check_access(user, capability) == expected


class TestResolve:
    """Test redirect and guard resolution."""

    def test_root_redirects_to_dashboard(self, registry):
        resolution = registry.resolve(ROOT_PATH, USER)
        assert resolution.path == DASHBOARD_PATH
        assert resolution.redirected_from == ROOT_PATH

    def test_anonymous_root_lands_on_login(self, registry):
        assert registry.resolve(ROOT_PATH, None).path == LOGIN_PATH

    def test_anonymous_dashboard_lands_on_login(self, registry):
        resolution = registry.resolve(DASHBOARD_PATH, None)
        assert resolution.path == LOGIN_PATH
        assert resolution.redirected

    def test_user_cannot_open_admin(self, registry):
        assert registry.resolve(ADMIN_PATH, USER).path == DASHBOARD_PATH

    def test_admin_opens_admin(self, registry):
        resolution = registry.resolve(ADMIN_PATH, ADMIN)
        assert resolution.path == ADMIN_PATH
        assert not resolution.redirected

    def test_public_routes_stay_reachable(self, registry):
        """The sign-in screens are reachable whether or not signed in."""
        assert registry.resolve(LOGIN_PATH, USER).path == LOGIN_PATH
        assert registry.resolve(REGISTER_PATH, None).path == REGISTER_PATH

    def test_unknown_path_behaves_like_root(self, registry):
        assert registry.resolve("/nowhere", USER).path == DASHBOARD_PATH
        assert registry.resolve("/nowhere", None).path == LOGIN_PATH

    def test_redirect_loop_raises(self, logger):
        routes = RouteRegistry(logger)
        routes.add_redirect("/a", "/b")
        routes.add_redirect("/b", "/a")
        with pytest.raises(RouteError):
            routes.resolve("/a", USER)

    def test_redirect_to_unregistered_route_raises(self, logger):
        routes = RouteRegistry(logger)
        routes.add_redirect(ROOT_PATH, "/missing")
        with pytest.raises(RouteError):
            routes.resolve(ROOT_PATH, USER)

    def test_self_redirect_rejected(self, logger):
        with pytest.raises(RouteError):
            RouteRegistry(logger).add_redirect("/a", "/a")


class TestRegistry:
    """Test lookup helpers."""

    def test_get_unknown_route(self, registry):
        with pytest.raises(RouteError):
            registry.get("/missing")

    def test_factory_is_stored(self, registry):
        assert registry.get(DASHBOARD_PATH).factory(None, None) == "dashboard"

    def test_factory_receives_parent_and_navigate(self, logger):
        """Views get the shell's navigate callback alongside their parent."""
        factory = Mock(return_value="view")
        navigate = Mock()
        routes = RouteRegistry(logger)
        routes.register("/settings", "Settings", factory)

        assert routes.get("/settings").factory("parent", navigate) == "view"
        factory.assert_called_once_with("parent", navigate)

    def test_sidebar_for_user(self, registry):
        assert [e.path for e in registry.sidebar_routes(USER)] == [DASHBOARD_PATH]

    def test_sidebar_for_admin(self, registry):
        assert [e.path for e in registry.sidebar_routes(ADMIN)] == [DASHBOARD_PATH, ADMIN_PATH]

    def test_sidebar_for_anonymous(self, registry):
        assert registry.sidebar_routes(None) == []


class TestRequireCapability:
    """Test the service-layer guard decorator."""

    def _guarded(self, user, capability):
        session = Mock(current_user=user)
        return require_capability(session, capability)(lambda value: value * 2)

    def test_anonymous_is_not_authenticated(self):
        with pytest.raises(AuthError) as exc_info:
            self._guarded(None, Capability.AUTHENTICATED)(2)
        assert exc_info.value.code == AuthErrorCode.NOT_AUTHENTICATED

    def test_user_is_forbidden_from_admin(self):
        with pytest.raises(AuthError) as exc_info:
            self._guarded(USER, Capability.ADMIN)(2)
        assert exc_info.value.code == AuthErrorCode.FORBIDDEN

    def test_admin_passes(self):
        assert self._guarded(ADMIN, Capability.ADMIN)(2) == 4

    def test_decision_is_made_per_call(self):
        """The guard reads the session at call time, not decoration time."""
        session = Mock(current_user=None)
        guarded = require_capability(session)(lambda: "ok")
        session.current_user = USER
        assert guarded() == "ok"
