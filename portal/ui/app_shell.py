"""Application Host Shell.

The top-level ``CTk`` window.  It owns navigation: every path request
goes through ``RouteRegistry.resolve`` and the shell renders whatever
route the guard lets through.

Lifecycle
---------
1. On boot: shows a placeholder and restores the persisted session on a
   worker thread, then navigates to ``/``.
2. Session transitions (login, register, restore, logout, profile
   update) arrive through ``SessionContext.subscribe`` and are
   marshalled onto the Tk thread with ``self.after(0, ...)``.
3. Logout clears local state synchronously; server-side revocation of
   the old token runs on a daemon thread.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

import customtkinter as ctk

from portal import __version__ as _APP_VERSION
from portal.auth import SessionContext
from portal.exceptions import RouteError
from portal.logger import StructuredLogger
from portal.models.enums import Capability
from portal.models.user import UserProfile
from portal.routing import DASHBOARD_PATH, LOGIN_PATH, ROOT_PATH, RouteRegistry
from portal.services.auth_service import AuthService
from portal.ui.sidebar import SidebarNav
from portal.ui.theme import (
    CONTENT_BG,
    FONT_BODY,
    LOGIN_WINDOW_HEIGHT,
    LOGIN_WINDOW_WIDTH,
    MAIN_WINDOW_HEIGHT,
    MAIN_WINDOW_WIDTH,
    TEXT_SECONDARY,
)


class AppShell(ctk.CTk):
    """Host Shell: the main application window.

    Parameters
    ----------
    session:
        Session context shared with every view.
    auth_service:
        Used for background sign-out after logout.
    registry:
        Route registry populated before the shell launches.
    logger:
        Structured logger instance.
    initial_path:
        Path requested once the session has been restored.
    """

    def __init__(
        self,
        session: SessionContext,
        auth_service: AuthService,
        registry: RouteRegistry,
        logger: StructuredLogger,
        initial_path: str = ROOT_PATH,
    ) -> None:
        super().__init__()

        self._session = session
        self._auth_service = auth_service
        self._registry = registry
        self._logger = logger
        self._initial_path = initial_path

        self._current_path: Optional[str] = None
        self._current_view: Optional[Any] = None
        self._sidebar: Optional[SidebarNav] = None
        self._last_user: Optional[UserProfile] = None
        self._ready: bool = False

        self.title(f"Account Portal v{_APP_VERSION}")
        ctk.set_appearance_mode("light")
        ctk.set_default_color_theme("blue")
        self.geometry(f"{MAIN_WINDOW_WIDTH}x{MAIN_WINDOW_HEIGHT}")
        self.minsize(LOGIN_WINDOW_WIDTH, LOGIN_WINDOW_HEIGHT)
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self._content = ctk.CTkFrame(self, fg_color=CONTENT_BG, corner_radius=0)
        self._content.pack(side="right", fill="both", expand=True)

        self._unsubscribe = session.subscribe(self._on_session_changed)
        self._start_restore()

    # ==================================================================
    # Navigation
    # ==================================================================

    def navigate(self, path: str) -> None:
        """Resolve *path* for the current user and render the result."""
        user = self._session.current_user
        try:
            resolution = self._registry.resolve(path, user)
            entry = self._registry.get(resolution.path)
        except RouteError as exc:
            self._logger.error("Navigation to '%s' failed: %s", path, exc)
            return

        if resolution.redirected:
            self._logger.info(
                "Redirected '%s' -> '%s'.", resolution.redirected_from, resolution.path,
                extra={"event": "ROUTE_REDIRECT"},
            )

        if self._current_view is not None:
            self._current_view.destroy()
            self._current_view = None

        self._sync_sidebar(user, show=entry.capability != Capability.PUBLIC)

        self._current_view = entry.factory(self._content, self.navigate)
        self._current_view.pack(fill="both", expand=True)
        self._current_path = resolution.path
        self._last_user = user
        self.title(f"Account Portal · {entry.title}")
        if self._sidebar is not None:
            self._sidebar.set_active(resolution.path)

    @property
    def current_path(self) -> Optional[str]:
        return self._current_path

    def _sync_sidebar(self, user: Optional[UserProfile], show: bool) -> None:
        """Rebuild the sidebar when it is needed for *user*; drop it otherwise."""
        if self._sidebar is not None:
            self._sidebar.destroy()
            self._sidebar = None
        if not show or user is None:
            return
        self._sidebar = SidebarNav(
            parent=self,
            user=user,
            routes=self._registry.sidebar_routes(user),
            on_navigate=self.navigate,
            on_logout=self._handle_logout,
        )
        self._sidebar.pack(side="left", fill="y", before=self._content)

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    def _start_restore(self) -> None:
        placeholder = ctk.CTkLabel(
            self._content, text="Restoring session...",
            font=FONT_BODY, text_color=TEXT_SECONDARY,
        )
        placeholder.place(relx=0.5, rely=0.5, anchor="center")

        def restore_in_background() -> None:
            try:
                self._session.restore()
            finally:
                self.after(0, self._finish_restore, placeholder)

        threading.Thread(
            target=restore_in_background,
            name="session-restore",
            daemon=True,
        ).start()

    def _finish_restore(self, placeholder: ctk.CTkLabel) -> None:
        placeholder.destroy()
        self._ready = True
        self.navigate(self._initial_path)

    def _on_session_changed(self, user: Optional[UserProfile]) -> None:
        """Listener; may run on a worker thread."""
        self.after(0, self._apply_session_change, user)

    def _apply_session_change(self, user: Optional[UserProfile]) -> None:
        if not self._ready:
            # The initial navigation after restore picks up the state.
            return
        previous = self._last_user

        if user is None:
            self.navigate(LOGIN_PATH)
        elif previous is None or previous.id != user.id:
            self.navigate(DASHBOARD_PATH)
        elif previous.role != user.role or previous.name != user.name:
            # Sidebar contents and guards depend on these.
            self.navigate(self._current_path or ROOT_PATH)
        else:
            self._last_user = user
            refresh = getattr(self._current_view, "refresh", None)
            if callable(refresh):
                refresh()

    def _handle_logout(self) -> None:
        """End the session locally; revoke the token in the background."""
        token = self._session.logout()
        if token is None:
            return
        threading.Thread(
            target=self._auth_service.sign_out,
            args=(token,),
            name="session-revoke",
            daemon=True,
        ).start()

    # ==================================================================
    # Window close
    # ==================================================================

    def _on_close(self) -> None:
        self._unsubscribe()
        self.destroy()
