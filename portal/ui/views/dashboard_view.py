"""Dashboard View: default landing page after login.

Shows the account card (name, email, phone, address) and toggles the
embedded settings editor.  Admins additionally get an "Admin Panel"
link.

**Thin UI Rule**: Zero business logic; only reads and displays.
"""

from __future__ import annotations

from typing import Callable, Optional

import customtkinter as ctk

from portal.auth import SessionContext
from portal.logger import StructuredLogger
from portal.routing import ADMIN_PATH
from portal.ui.theme import (
    ACCENT_HOVER,
    ACCENT_PRIMARY,
    CONTENT_BG,
    CONTENT_CARD_BG,
    CORNER_RADIUS,
    FONT_BODY,
    FONT_BUTTON,
    FONT_HEADING,
    FONT_LABEL,
    FONT_SUBTITLE,
    PADDING_LG,
    PADDING_MD,
    TEXT_LIGHT,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)
from portal.ui.views.settings_view import SettingsView

# Account card rows: (label, profile attribute).
_ACCOUNT_ROWS: tuple[tuple[str, str], ...] = (
    ("Full name", "name"),
    ("Email address", "email"),
    ("Phone number", "phone_number"),
    ("Address", "address"),
)


class DashboardView(ctk.CTkFrame):
    """User dashboard.

    Parameters
    ----------
    parent:
        Content container provided by the shell.
    session:
        Used to read the current user's profile.
    navigate:
        Shell navigation callback (``navigate("/admin")``).
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        parent: ctk.CTkFrame,
        session: SessionContext,
        navigate: Callable[[str], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=CONTENT_BG)
        self._session = session
        self._navigate = navigate
        self._logger = logger

        self._value_labels: dict[str, ctk.CTkLabel] = {}
        self._account_card: Optional[ctk.CTkFrame] = None
        self._settings_view: Optional[SettingsView] = None
        self._settings_button: Optional[ctk.CTkButton] = None

        self._build_ui()

    # ------------------------------------------------------------------
    # Widget creation
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        user = self._session.require_user()

        header = ctk.CTkFrame(self, fg_color="transparent")
        header.pack(fill="x", padx=PADDING_LG, pady=(PADDING_LG, 0))

        text = ctk.CTkFrame(header, fg_color="transparent")
        text.pack(side="left", fill="x", expand=True)
        ctk.CTkLabel(
            text, text="Welcome to your dashboard", font=FONT_HEADING,
            text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x")
        ctk.CTkLabel(
            text, text="Here you can manage your account and view your information.",
            font=FONT_SUBTITLE, text_color=TEXT_SECONDARY, anchor="w",
        ).pack(fill="x")

        if user.is_admin:
            ctk.CTkButton(
                header,
                text="Admin Panel",
                font=FONT_BUTTON,
                fg_color="transparent",
                hover_color=CONTENT_CARD_BG,
                text_color=ACCENT_PRIMARY,
                command=lambda: self._navigate(ADMIN_PATH),
            ).pack(side="right")

        self._settings_button = ctk.CTkButton(
            header,
            text=f"⚙  {user.email}",
            font=FONT_BUTTON,
            fg_color=ACCENT_PRIMARY,
            hover_color=ACCENT_HOVER,
            text_color=TEXT_LIGHT,
            corner_radius=CORNER_RADIUS,
            command=self.toggle_settings,
        )
        self._settings_button.pack(side="right", padx=PADDING_MD)

        self._account_card = ctk.CTkFrame(
            self, fg_color=CONTENT_CARD_BG, corner_radius=CORNER_RADIUS,
        )
        ctk.CTkLabel(
            self._account_card, text="Account Information", font=FONT_HEADING,
            text_color=TEXT_PRIMARY, anchor="w",
        ).grid(row=0, column=0, columnspan=2, sticky="w", padx=PADDING_MD, pady=PADDING_MD)
        self._account_card.grid_columnconfigure(1, weight=1)

        for row, (label, attr) in enumerate(_ACCOUNT_ROWS, start=1):
            ctk.CTkLabel(
                self._account_card, text=label, font=FONT_LABEL,
                text_color=TEXT_SECONDARY, anchor="w",
            ).grid(row=row, column=0, sticky="w", padx=PADDING_MD, pady=6)
            value = ctk.CTkLabel(
                self._account_card, text="", font=FONT_BODY,
                text_color=TEXT_PRIMARY, anchor="w",
            )
            value.grid(row=row, column=1, sticky="w", padx=PADDING_MD, pady=6)
            self._value_labels[attr] = value

        self.refresh()
        self._account_card.pack(fill="x", padx=PADDING_LG, pady=PADDING_LG)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Re-read the profile into the account card."""
        user = self._session.current_user
        if user is None:
            return
        for attr, label in self._value_labels.items():
            label.configure(text=getattr(user, attr) or "")
        if self._settings_button is not None:
            self._settings_button.configure(text=f"⚙  {user.email}")

    def toggle_settings(self) -> None:
        """Swap between the account card and the settings editor."""
        if self._settings_view is not None:
            self._close_settings()
            return
        if self._account_card is not None:
            self._account_card.pack_forget()
        self._settings_view = SettingsView(
            parent=self,
            session=self._session,
            on_close=self._close_settings,
            logger=self._logger,
        )
        self._settings_view.pack(fill="x", padx=PADDING_LG, pady=PADDING_LG)

    def _close_settings(self) -> None:
        if self._settings_view is not None:
            self._settings_view.destroy()
            self._settings_view = None
        self.refresh()
        if self._account_card is not None:
            self._account_card.pack(fill="x", padx=PADDING_LG, pady=PADDING_LG)
