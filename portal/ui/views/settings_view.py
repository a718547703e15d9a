"""Settings View: profile editor.

Embedded in the dashboard.  Shows one entry per editable profile field,
submits the changed fields to ``SessionContext.update_user_details`` on
a worker thread and closes itself once the backend confirms.

**Thin UI Rule**: validation and persistence are delegated to the
session and ``AuthService``.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

import customtkinter as ctk

from portal.auth import SessionContext
from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.models.user import EDITABLE_FIELDS, ProfileUpdate
from portal.ui.theme import (
    ACCENT_HOVER,
    ACCENT_PRIMARY,
    BUTTON_HEIGHT,
    CONTENT_CARD_BG,
    CORNER_RADIUS,
    ERROR_TEXT,
    FONT_BODY,
    FONT_BUTTON,
    FONT_HEADING,
    FONT_LABEL,
    FONT_SMALL,
    INPUT_BG,
    INPUT_BORDER,
    INPUT_HEIGHT,
    NEUTRAL_BUTTON,
    NEUTRAL_HOVER,
    PADDING_LG,
    PADDING_MD,
    PADDING_SM,
    TEXT_LIGHT,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)

FIELD_LABELS: dict[str, str] = {
    "name": "Name",
    "email": "Email",
    "address": "Address",
    "billing_address": "Billing Address",
    "phone_number": "Phone Number",
    "location": "Location",
    "vat_number": "VAT Number",
}


class SettingsView(ctk.CTkFrame):
    """Form over every editable profile field with Save / Cancel.

    Parameters
    ----------
    parent:
        Frame provided by the dashboard.
    session:
        Session context that applies the update.
    on_close:
        Called on Cancel and after a confirmed save.
    logger:
        Structured logger instance.
    """

    def __init__(
        self,
        parent: ctk.CTkFrame,
        session: SessionContext,
        on_close: Callable[[], None],
        logger: StructuredLogger,
    ) -> None:
        super().__init__(parent, fg_color=CONTENT_CARD_BG, corner_radius=CORNER_RADIUS)
        self._session = session
        self._on_close = on_close
        self._logger = logger

        self._entries: dict[str, ctk.CTkEntry] = {}
        self._save_button: Optional[ctk.CTkButton] = None
        self._message_label: Optional[ctk.CTkLabel] = None

        self._build_ui()

    # ------------------------------------------------------------------
    # Widget creation
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        user = self._session.require_user()

        ctk.CTkLabel(
            self, text="User Settings", font=FONT_HEADING,
            text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", padx=PADDING_MD, pady=(PADDING_MD, 2))
        ctk.CTkLabel(
            self, text="Update your personal information", font=FONT_SMALL,
            text_color=TEXT_SECONDARY, anchor="w",
        ).pack(fill="x", padx=PADDING_MD, pady=(0, PADDING_MD))

        form = ctk.CTkFrame(self, fg_color="transparent")
        form.pack(fill="x", padx=PADDING_MD)
        form.grid_columnconfigure(1, weight=1)

        for row, field in enumerate(EDITABLE_FIELDS):
            ctk.CTkLabel(
                form, text=FIELD_LABELS[field], font=FONT_LABEL,
                text_color=TEXT_SECONDARY, anchor="w",
            ).grid(row=row, column=0, sticky="w", padx=(0, PADDING_MD), pady=4)

            entry = ctk.CTkEntry(
                form,
                font=FONT_BODY,
                fg_color=INPUT_BG,
                border_color=INPUT_BORDER,
                text_color=TEXT_PRIMARY,
                height=INPUT_HEIGHT,
                corner_radius=CORNER_RADIUS,
            )
            entry.insert(0, getattr(user, field) or "")
            entry.grid(row=row, column=1, sticky="ew", pady=4)
            self._entries[field] = entry

        self._message_label = ctk.CTkLabel(
            self, text="", font=FONT_SMALL, text_color=ERROR_TEXT, anchor="w",
        )
        self._message_label.pack(fill="x", padx=PADDING_MD, pady=(PADDING_SM, 0))

        buttons = ctk.CTkFrame(self, fg_color="transparent")
        buttons.pack(fill="x", padx=PADDING_MD, pady=PADDING_MD)

        self._save_button = ctk.CTkButton(
            buttons,
            text="Save",
            font=FONT_BUTTON,
            fg_color=ACCENT_PRIMARY,
            hover_color=ACCENT_HOVER,
            text_color=TEXT_LIGHT,
            height=BUTTON_HEIGHT,
            corner_radius=CORNER_RADIUS,
            command=self._handle_save,
        )
        self._save_button.pack(side="right")

        ctk.CTkButton(
            buttons,
            text="Cancel",
            font=FONT_BUTTON,
            fg_color=NEUTRAL_BUTTON,
            hover_color=NEUTRAL_HOVER,
            text_color=TEXT_LIGHT,
            height=BUTTON_HEIGHT,
            corner_radius=CORNER_RADIUS,
            command=self._on_close,
        ).pack(side="right", padx=(0, PADDING_LG))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle_save(self) -> None:
        """Collect the form and submit it off the main thread."""
        user = self._session.current_user
        if user is None:
            return
        values = {field: entry.get() for field, entry in self._entries.items()}
        update = ProfileUpdate.from_form(user, values)

        if not update.changes():
            self._on_close()
            return

        self._set_saving(True)
        self._show_message("")

        def worker() -> None:
            try:
                self._session.update_user_details(update)
            except AuthError as exc:
                self.after(0, self._handle_failure, exc.message)
                return
            except Exception as exc:
                self._logger.exception("Unexpected failure while saving profile.")
                self.after(0, self._handle_failure, f"Unexpected error: {exc}")
                return
            self.after(0, self._handle_saved)

        threading.Thread(target=worker, name="profile-update", daemon=True).start()

    def _handle_saved(self) -> None:
        if self.winfo_exists():
            self._on_close()

    def _handle_failure(self, message: str) -> None:
        if not self.winfo_exists():
            return
        self._set_saving(False)
        self._show_message(message)

    def _show_message(self, message: str) -> None:
        if self._message_label is not None:
            self._message_label.configure(text=message)

    def _set_saving(self, saving: bool) -> None:
        if self._save_button is None:
            return
        if saving:
            self._save_button.configure(text="Saving...", state="disabled")
        else:
            self._save_button.configure(text="Save", state="normal")
