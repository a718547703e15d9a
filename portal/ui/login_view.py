"""Login View: Authentication Screen.

Presents a login form with Sign In / Create Account tabs and hands the
credentials to the ``SessionContext`` on a worker thread.

**Thin UI Rule**: This module contains no business logic.  It gathers
inputs, delegates to the session, and displays errors inline.  Moving
to the dashboard on success is the shell's job: it reacts to the
session transition.
"""

from __future__ import annotations

import threading
import tkinter as tk
from typing import Callable, Optional

import customtkinter as ctk

from portal.auth import SessionContext
from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.ui.theme import (
    ACCENT_HOVER,
    ACCENT_PRIMARY,
    BUTTON_HEIGHT,
    CARD_BORDER,
    CONTENT_BG,
    CONTENT_CARD_BG,
    CORNER_RADIUS,
    ERROR_TEXT,
    FONT_BODY,
    FONT_BRAND,
    FONT_BUTTON,
    FONT_LABEL,
    FONT_SMALL,
    FONT_SUBTITLE,
    FONT_TAB,
    FONT_TAB_ACTIVE,
    INPUT_BG,
    INPUT_BORDER,
    INPUT_HEIGHT,
    PADDING_LG,
    PADDING_MD,
    PADDING_SM,
    TAB_HOVER,
    TEXT_LIGHT,
    TEXT_PRIMARY,
    TEXT_SECONDARY,
)

_CARD_WIDTH: int = 420
_TAB_HEIGHT: int = 42

SIGN_IN_TAB: str = "sign_in"
REGISTER_TAB: str = "register"


class _CredentialsForm(ctk.CTkFrame):
    """Email + password fields, a submit button and an inline error label."""

    def __init__(
        self,
        parent: ctk.CTkFrame,
        submit_text: str,
        busy_text: str,
        on_submit: Callable[[str, str], None],
    ) -> None:
        super().__init__(parent, fg_color="transparent")
        self._submit_text = submit_text
        self._busy_text = busy_text
        self._on_submit = on_submit

        ctk.CTkLabel(
            self, text="EMAIL ADDRESS", font=FONT_LABEL,
            text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", pady=(PADDING_MD, 4))
        self.email_entry = ctk.CTkEntry(
            self,
            placeholder_text="name@example.com",
            font=FONT_BODY,
            fg_color=INPUT_BG,
            border_color=INPUT_BORDER,
            text_color=TEXT_PRIMARY,
            height=INPUT_HEIGHT,
            corner_radius=CORNER_RADIUS,
        )
        self.email_entry.pack(fill="x", pady=(0, PADDING_MD))

        ctk.CTkLabel(
            self, text="PASSWORD", font=FONT_LABEL,
            text_color=TEXT_PRIMARY, anchor="w",
        ).pack(fill="x", pady=(0, 4))
        self.password_entry = ctk.CTkEntry(
            self,
            placeholder_text="••••••••",
            font=FONT_BODY,
            fg_color=INPUT_BG,
            border_color=INPUT_BORDER,
            text_color=TEXT_PRIMARY,
            show="*",
            height=INPUT_HEIGHT,
            corner_radius=CORNER_RADIUS,
        )
        self.password_entry.pack(fill="x", pady=(0, PADDING_LG))
        self.password_entry.bind("<Return>", self._on_enter_key)

        self._button = ctk.CTkButton(
            self,
            text=submit_text,
            font=FONT_BUTTON,
            fg_color=ACCENT_PRIMARY,
            hover_color=ACCENT_HOVER,
            text_color=TEXT_LIGHT,
            height=BUTTON_HEIGHT,
            corner_radius=CORNER_RADIUS,
            command=self._submit,
        )
        self._button.pack(fill="x", pady=(0, PADDING_SM))

        self._error_label = ctk.CTkLabel(
            self, text="", font=FONT_SMALL,
            text_color=ERROR_TEXT, wraplength=_CARD_WIDTH - 100,
        )

    def _on_enter_key(self, event: tk.Event[tk.Misc]) -> None:
        self._submit()

    def _submit(self) -> None:
        self.clear_error()
        self._on_submit(self.email_entry.get(), self.password_entry.get())

    def show_error(self, message: str) -> None:
        """Display a red error message below the button."""
        self._error_label.configure(text=message)
        self._error_label.pack(fill="x")

    def clear_error(self) -> None:
        self._error_label.configure(text="")
        self._error_label.pack_forget()

    def set_loading(self, loading: bool) -> None:
        """Disable the button while a request is in flight."""
        if loading:
            self._button.configure(text=self._busy_text, state="disabled")
        else:
            self._button.configure(text=self._submit_text, state="normal")


class LoginView(ctk.CTkFrame):
    """Full-screen login frame with Sign In / Create Account tabs.

    Parameters
    ----------
    parent:
        The content frame this view belongs to.
    session:
        Session context performing login and registration.
    logger:
        Structured JSON logger.
    initial_tab:
        ``"sign_in"`` (``/login``) or ``"register"`` (``/register``).
    """

    def __init__(
        self,
        parent: ctk.CTkFrame,
        session: SessionContext,
        logger: StructuredLogger,
        initial_tab: str = SIGN_IN_TAB,
    ) -> None:
        super().__init__(parent, fg_color=CONTENT_BG)

        self._session = session
        self._logger = logger
        self._active_tab: Optional[str] = None
        self._tab_buttons: dict[str, ctk.CTkButton] = {}
        self._forms: dict[str, _CredentialsForm] = {}

        self._build_ui()
        self.switch_tab(initial_tab)

    # ------------------------------------------------------------------
    # UI Construction
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        # Grid weights keep the card centred as the window resizes.
        self.grid_rowconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)
        self.grid_columnconfigure(0, weight=1)

        card = ctk.CTkFrame(
            self,
            width=_CARD_WIDTH,
            fg_color=CONTENT_CARD_BG,
            corner_radius=16,
            border_width=1,
            border_color=CARD_BORDER,
        )
        card.grid(row=1, column=0)

        inner = ctk.CTkFrame(card, fg_color="transparent")
        inner.pack(fill="both", expand=True, padx=36, pady=28)

        ctk.CTkLabel(
            inner, text="Account Portal", font=FONT_BRAND, text_color=TEXT_PRIMARY,
        ).pack(pady=(0, 2))
        ctk.CTkLabel(
            inner, text="Sign in to manage your account",
            font=FONT_SUBTITLE, text_color=TEXT_SECONDARY,
        ).pack(pady=(0, PADDING_LG))

        tab_bar = ctk.CTkFrame(inner, fg_color="transparent", height=_TAB_HEIGHT)
        tab_bar.pack(fill="x", pady=(0, PADDING_MD))
        tab_bar.pack_propagate(False)
        tab_bar.grid_columnconfigure(0, weight=1)
        tab_bar.grid_columnconfigure(1, weight=1)

        for column, (tab, label) in enumerate(
            ((SIGN_IN_TAB, "Sign In"), (REGISTER_TAB, "Create Account"))
        ):
            button = ctk.CTkButton(
                tab_bar,
                text=label,
                font=FONT_TAB,
                fg_color="transparent",
                hover_color=TAB_HOVER,
                text_color=TEXT_SECONDARY,
                height=_TAB_HEIGHT,
                corner_radius=0,
                border_width=1,
                border_color=INPUT_BORDER,
                command=lambda t=tab: self.switch_tab(t),
            )
            button.grid(row=0, column=column, sticky="nsew")
            self._tab_buttons[tab] = button

        self._forms[SIGN_IN_TAB] = _CredentialsForm(
            inner, "Sign In  →", "Signing in...", self._handle_login,
        )
        self._forms[REGISTER_TAB] = _CredentialsForm(
            inner, "Create Account  →", "Creating account...", self._handle_register,
        )

    def switch_tab(self, tab: str) -> None:
        """Switch between the Sign In and Create Account tabs."""
        if tab == self._active_tab or tab not in self._forms:
            return
        self._active_tab = tab

        for name, form in self._forms.items():
            form.clear_error()
            active = name == tab
            if active:
                form.pack(fill="both", expand=True)
            else:
                form.pack_forget()
            self._tab_buttons[name].configure(
                text_color=ACCENT_PRIMARY if active else TEXT_SECONDARY,
                border_color=ACCENT_PRIMARY if active else INPUT_BORDER,
                border_width=2 if active else 1,
                font=FONT_TAB_ACTIVE if active else FONT_TAB,
            )

    # ------------------------------------------------------------------
    # Event Handlers
    # ------------------------------------------------------------------

    def _handle_login(self, email: str, password: str) -> None:
        self._run(self._forms[SIGN_IN_TAB], self._session.login, email, password)

    def _handle_register(self, email: str, password: str) -> None:
        self._run(self._forms[REGISTER_TAB], self._session.register, email, password)

    def _run(
        self,
        form: _CredentialsForm,
        action: Callable[[str, str], object],
        email: str,
        password: str,
    ) -> None:
        """Run *action* off the main thread; report failures on *form*.

        All UI mutations are dispatched back via ``self.after(0, ...)``.
        """
        form.set_loading(True)

        def worker() -> None:
            try:
                action(email, password)
            except AuthError as exc:
                self.after(0, lambda msg=exc.message: form.show_error(msg))
            except Exception as exc:
                self._logger.exception("Unexpected authentication failure.")
                self.after(0, lambda msg=str(exc): form.show_error(f"Unexpected error: {msg}"))
            finally:
                self.after(0, self._finish_loading, form)

        threading.Thread(target=worker, name="auth-request", daemon=True).start()

    def _finish_loading(self, form: _CredentialsForm) -> None:
        # On success the shell may already have replaced this view.
        if form.winfo_exists():
            form.set_loading(False)
