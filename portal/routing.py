"""
Route Registry and Access Guards.

Routes are path strings (``/login``, ``/dashboard`` ...) registered with
a view factory and a required ``Capability``.  ``RouteRegistry.resolve``
follows redirects and guard decisions until it lands on a route the
current user may see; the ``AppShell`` only ever renders the result.

``require_capability`` applies the same rules to service-layer calls.

Usage::

    registry = RouteRegistry(logger)
    registry.register(
        "/admin", "Admin Panel",
        lambda parent, navigate: AdminView(parent, user_service, navigate, logger),
        Capability.ADMIN,
    )
    registry.add_redirect("/", "/dashboard")

    resolution = registry.resolve("/admin", session.current_user)
"""

from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Optional, ParamSpec, TypeVar

from pydantic import BaseModel

from portal.exceptions import AuthError, RouteError
from portal.logger import StructuredLogger
from portal.models.auth_models import AuthErrorCode
from portal.models.enums import Capability
from portal.models.user import UserProfile

if TYPE_CHECKING:
    from portal.auth import SessionContext

P = ParamSpec("P")
R = TypeVar("R")

LOGIN_PATH: str = "/login"
REGISTER_PATH: str = "/register"
DASHBOARD_PATH: str = "/dashboard"
ADMIN_PATH: str = "/admin"
ROOT_PATH: str = "/"

_MAX_HOPS: int = 8

Navigate = Callable[[str], None]
ViewFactory = Callable[[Any, Navigate], Any]
"""Builds a view from its parent frame and the shell's navigate callback."""


def check_access(user: Optional[UserProfile], capability: Capability) -> Optional[str]:
    """Decide whether *user* may enter a route requiring *capability*.

    Returns ``None`` when access is granted, otherwise the path to
    redirect to: ``/login`` for anonymous visitors and ``/dashboard``
    for signed-in users lacking the admin role.
    """
    if capability == Capability.PUBLIC:
        return None
    if user is None:
        return LOGIN_PATH
    if capability == Capability.ADMIN and not user.is_admin:
        return DASHBOARD_PATH
    return None


def require_capability(
    session: "SessionContext",
    capability: Capability = Capability.AUTHENTICATED,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Return a decorator that enforces *capability* via *session*.

    Raises ``AuthError`` with ``NOT_AUTHENTICATED`` when nobody is logged
    in, or ``FORBIDDEN`` when the user lacks the admin role.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            redirect = check_access(session.current_user, capability)
            if redirect == LOGIN_PATH:
                raise AuthError(
                    AuthErrorCode.NOT_AUTHENTICATED,
                    "Authentication required. Please log in before "
                    "performing this action.",
                )
            if redirect is not None:
                raise AuthError(
                    AuthErrorCode.FORBIDDEN,
                    "Administrator access required.",
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator


class RouteEntry:
    """Metadata for a single registered route.

    Attributes
    ----------
    path:
        Unique path (e.g. ``'/dashboard'``).
    title:
        Human-readable name shown in the window title and sidebar.
    factory:
        Callable that receives the parent frame and the navigate
        callback and returns the view.
        Called each time the route is shown.
    capability:
        Access requirement checked by :func:`check_access`.
    in_sidebar:
        Whether the sidebar lists this route.
    """

    __slots__ = ("path", "title", "factory", "capability", "in_sidebar")

    def __init__(
        self,
        path: str,
        title: str,
        factory: ViewFactory,
        capability: Capability,
        in_sidebar: bool,
    ) -> None:
        self.path = path
        self.title = title
        self.factory = factory
        self.capability = capability
        self.in_sidebar = in_sidebar


class RouteResolution(BaseModel):
    """Outcome of resolving a requested path."""

    path: str
    redirected_from: Optional[str] = None

    @property
    def redirected(self) -> bool:
        return self.redirected_from is not None


class RouteRegistry:
    """Manages the collection of registered routes.

    Parameters
    ----------
    logger:
        Structured logger for registration and redirect events.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._entries: dict[str, RouteEntry] = {}
        self._redirects: dict[str, str] = {}
        self._logger = logger

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        path: str,
        title: str,
        factory: ViewFactory,
        capability: Capability = Capability.AUTHENTICATED,
        *,
        in_sidebar: bool = False,
    ) -> None:
        """Register a view under *path*."""
        if path in self._entries:
            self._logger.warning("Route '%s' already registered; overwriting.", path)
        self._entries[path] = RouteEntry(path, title, factory, capability, in_sidebar)
        self._logger.debug("Route registered: %s (%s, %s)", path, title, capability)

    def add_redirect(self, source: str, target: str) -> None:
        """Send every request for *source* to *target*."""
        if source == target:
            raise RouteError(f"Route '{source}' cannot redirect to itself.")
        self._redirects[source] = target

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, path: str) -> RouteEntry:
        """Return a route entry by path.

        Raises
        ------
        RouteError
            If *path* is not registered.
        """
        if path not in self._entries:
            raise RouteError(f"Route '{path}' is not registered.")
        return self._entries[path]

    def sidebar_routes(self, user: Optional[UserProfile]) -> list[RouteEntry]:
        """Sidebar entries *user* may open, preserving registration order."""
        return [
            entry
            for entry in self._entries.values()
            if entry.in_sidebar and check_access(user, entry.capability) is None
        ]

    def resolve(self, path: str, user: Optional[UserProfile]) -> RouteResolution:
        """Follow redirects and guards until a reachable route is found.

        Unknown paths are treated like ``/``.

        Raises
        ------
        RouteError
            On a redirect loop or a redirect to an unregistered route.
        """
        requested = path
        current = path
        visited: list[str] = []

        for _ in range(_MAX_HOPS):
            if current in visited:
                break
            visited.append(current)

            if current in self._redirects:
                current = self._redirects[current]
                continue

            entry = self._entries.get(current)
            if entry is None:
                if current == requested and current != ROOT_PATH:
                    self._logger.debug("Unknown route '%s'; using '%s'.", current, ROOT_PATH)
                    current = ROOT_PATH
                    continue
                raise RouteError(f"Route '{current}' is not registered.")

            target = check_access(user, entry.capability)
            if target is None:
                redirected_from = requested if current != requested else None
                if redirected_from is not None:
                    self._logger.debug("Route '%s' resolved to '%s'.", requested, current)
                return RouteResolution(path=current, redirected_from=redirected_from)
            current = target

        raise RouteError(
            f"Could not resolve route '{requested}': redirect loop via {' -> '.join(visited)}."
        )
