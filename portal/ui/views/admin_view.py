"""Admin View: user administration.

Lists every account (name, email, role) behind a Show / Hide toggle and
offers a role selector per row.  Loading and role changes run on worker
threads through ``UserService``.

**Thin UI Rule**: authorisation and auditing live in ``UserService``.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

import customtkinter as ctk

from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.models.enums import UserRole
from portal.models.user import UserProfile
from portal.routing import DASHBOARD_PATH
from portal.services.users import UserService
from portal.ui.theme import (
    ACCENT_PRIMARY,
    CONTENT_BG,
    CONTENT_CARD_BG,
    CORNER_RADIUS,
    ERROR_TEXT,
    FONT_BODY,
    FONT_BUTTON,
    FONT_HEADING,
    FONT_LABEL,
    FONT_SUBTITLE,
    PADDING_LG,
    PADDING_MD,
    PADDING_SM,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)

_ROLE_CHOICES: list[str] = [role.value for role in UserRole]


class AdminView(ctk.CTkFrame):
    """Admin dashboard with the user list.

    Parameters
    ----------
    parent:
        Content container provided by the shell.
    user_service:
        Admin-only user operations.
    navigate:
        Shell navigation callback.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        parent: ctk.CTkFrame,
        user_service: UserService,
        navigate: Callable[[str], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=CONTENT_BG)
        self._user_service = user_service
        self._navigate = navigate
        self._logger = logger

        self._users: list[UserProfile] = []
        self._list_visible: bool = False
        self._toggle_button: Optional[ctk.CTkButton] = None
        self._status_label: Optional[ctk.CTkLabel] = None
        self._table: Optional[ctk.CTkScrollableFrame] = None

        self._build_ui()
        self._load_users()

    # ------------------------------------------------------------------
    # Widget creation
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        header = ctk.CTkFrame(self, fg_color="transparent")
        header.pack(fill="x", padx=PADDING_LG, pady=(PADDING_LG, 0))

        text = ctk.CTkFrame(header, fg_color="transparent")
        text.pack(side="left", fill="x", expand=True)
        ctk.CTkLabel(
            text, text="Admin Panel", font=FONT_HEADING,
            text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x")
        ctk.CTkLabel(
            text, text="Manage users and system settings.", font=FONT_SUBTITLE,
            text_color=TEXT_SECONDARY, anchor="w",
        ).pack(fill="x")

        ctk.CTkButton(
            header,
            text="User Dashboard",
            font=FONT_BUTTON,
            fg_color="transparent",
            hover_color=CONTENT_CARD_BG,
            text_color=ACCENT_PRIMARY,
            command=lambda: self._navigate(DASHBOARD_PATH),
        ).pack(side="right")

        self._toggle_button = ctk.CTkButton(
            header,
            text="Show User List",
            font=FONT_BUTTON,
            fg_color="transparent",
            hover_color=CONTENT_CARD_BG,
            text_color=ACCENT_PRIMARY,
            command=self.toggle_user_list,
        )
        self._toggle_button.pack(side="right", padx=PADDING_SM)

        self._status_label = ctk.CTkLabel(
            self, text="Loading...", font=FONT_BODY,
            text_color=TEXT_SECONDARY, anchor="w",
        )
        self._status_label.pack(fill="x", padx=PADDING_LG, pady=(PADDING_MD, 0))

        self._table = ctk.CTkScrollableFrame(
            self, fg_color=CONTENT_CARD_BG, corner_radius=CORNER_RADIUS,
        )
        for column in range(3):
            self._table.grid_columnconfigure(column, weight=1)

    def _render_rows(self) -> None:
        if self._table is None:
            return
        for child in self._table.winfo_children():
            child.destroy()

        for column, heading in enumerate(("NAME", "EMAIL", "ROLE")):
            ctk.CTkLabel(
                self._table, text=heading, font=FONT_LABEL,
                text_color=TEXT_SECONDARY, anchor="w",
            ).grid(row=0, column=column, sticky="w", padx=PADDING_MD, pady=PADDING_SM)

        for row, user in enumerate(self._users, start=1):
            ctk.CTkLabel(
                self._table, text=user.name, font=FONT_BODY,
                text_color=TEXT_PRIMARY, anchor="w",
            ).grid(row=row, column=0, sticky="w", padx=PADDING_MD, pady=4)
            ctk.CTkLabel(
                self._table, text=user.email, font=FONT_BODY,
                text_color=TEXT_SECONDARY, anchor="w",
            ).grid(row=row, column=1, sticky="w", padx=PADDING_MD, pady=4)

            selector = ctk.CTkOptionMenu(
                self._table,
                values=_ROLE_CHOICES,
                command=lambda role, user_id=user.id: self._change_role(user_id, role),
            )
            selector.set(user.role.value)
            selector.grid(row=row, column=2, sticky="w", padx=PADDING_MD, pady=4)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def toggle_user_list(self) -> None:
        """Show or hide the user table."""
        if self._table is None or self._toggle_button is None:
            return
        self._list_visible = not self._list_visible
        if self._list_visible:
            self._table.pack(fill="both", expand=True, padx=PADDING_LG, pady=PADDING_LG)
            self._toggle_button.configure(text="Hide User List")
        else:
            self._table.pack_forget()
            self._toggle_button.configure(text="Show User List")

    def _load_users(self) -> None:
        def worker() -> None:
            try:
                users = self._user_service.list_users()
            except AuthError as exc:
                self.after(0, self._show_status, exc.message, True)
                return
            except Exception as exc:
                self._logger.exception("Unexpected failure while loading users.")
                self.after(0, self._show_status, f"Unexpected error: {exc}", True)
                return
            self.after(0, self._handle_users_loaded, users)

        threading.Thread(target=worker, name="admin-list-users", daemon=True).start()

    def _handle_users_loaded(self, users: list[UserProfile]) -> None:
        if not self.winfo_exists():
            return
        self._users = users
        self._show_status(f"{len(users)} users", False)
        self._render_rows()

    def _change_role(self, user_id: str, role: str) -> None:
        def worker() -> None:
            try:
                updated = self._user_service.update_user_role(user_id, role)
            except AuthError as exc:
                self.after(0, self._handle_role_failure, exc.message)
                return
            except Exception as exc:
                self._logger.exception("Unexpected failure while changing role for %s.", user_id)
                self.after(0, self._handle_role_failure, f"Unexpected error: {exc}")
                return
            self.after(0, self._handle_role_changed, updated)

        threading.Thread(target=worker, name="admin-update-role", daemon=True).start()

    def _handle_role_changed(self, updated: UserProfile) -> None:
        if not self.winfo_exists():
            return
        self._users = [updated if user.id == updated.id else user for user in self._users]
        self._show_status(f"{updated.email} is now {updated.role.value}.", False)
        self._render_rows()

    def _handle_role_failure(self, message: str) -> None:
        if not self.winfo_exists():
            return
        self._show_status(message, True)
        # Reset the selectors to the last confirmed roles.
        self._render_rows()

    def _show_status(self, message: str, is_error: bool) -> None:
        if self._status_label is not None and self._status_label.winfo_exists():
            self._status_label.configure(
                text=message,
                text_color=ERROR_TEXT if is_error else TEXT_SECONDARY,
            )
