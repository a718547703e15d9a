"""UI Theme Constants for the Account Portal.

Centralises all colour, font, and sizing constants for the
CustomTkinter interface: dark sidebar, light content area.

This file contains **zero logic**, only ``Final`` constants.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------

SIDEBAR_BG: Final[str] = "#1f2937"
SIDEBAR_HOVER: Final[str] = "#374151"
SIDEBAR_ACTIVE: Final[str] = "#2563eb"
SIDEBAR_TEXT: Final[str] = "#e5e7eb"

CONTENT_BG: Final[str] = "#f3f4f6"
CONTENT_CARD_BG: Final[str] = "#ffffff"
CARD_BORDER: Final[str] = "#e5e7eb"

ACCENT_PRIMARY: Final[str] = "#2563eb"
ACCENT_HOVER: Final[str] = "#1d4ed8"
NEUTRAL_BUTTON: Final[str] = "#6b7280"
NEUTRAL_HOVER: Final[str] = "#4b5563"
TEXT_PRIMARY: Final[str] = "#111827"
TEXT_SECONDARY: Final[str] = "#6b7280"
TEXT_LIGHT: Final[str] = "#ffffff"

# Input / form
INPUT_BG: Final[str] = "#ffffff"
INPUT_BORDER: Final[str] = "#d1d5db"
ERROR_TEXT: Final[str] = "#dc2626"
SUCCESS_TEXT: Final[str] = "#16a34a"

# Tab / interactive
TAB_HOVER: Final[str] = "#f3f4f6"
LOGOUT_PRIMARY: Final[str] = "#ef4444"
LOGOUT_HOVER: Final[str] = "#3f1d1d"

# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------

FONT_FAMILY: Final[str] = "Segoe UI"
FONT_BRAND: Final[tuple[str, int, str]] = (FONT_FAMILY, 22, "bold")
FONT_ICON_LG: Final[tuple[str, int, str]] = (FONT_FAMILY, 24, "bold")
FONT_HEADING: Final[tuple[str, int, str]] = (FONT_FAMILY, 20, "bold")
FONT_SUBTITLE: Final[tuple[str, int]] = (FONT_FAMILY, 12)
FONT_BODY: Final[tuple[str, int]] = (FONT_FAMILY, 13)
FONT_SIDEBAR: Final[tuple[str, int]] = (FONT_FAMILY, 14)
FONT_SIDEBAR_ACTIVE: Final[tuple[str, int, str]] = (FONT_FAMILY, 14, "bold")
FONT_LABEL: Final[tuple[str, int, str]] = (FONT_FAMILY, 11, "bold")
FONT_SMALL: Final[tuple[str, int]] = (FONT_FAMILY, 11)
FONT_BUTTON: Final[tuple[str, int, str]] = (FONT_FAMILY, 13, "bold")
FONT_TAB: Final[tuple[str, int]] = (FONT_FAMILY, 13)
FONT_TAB_ACTIVE: Final[tuple[str, int, str]] = (FONT_FAMILY, 13, "bold")

# ---------------------------------------------------------------------------
# Dimensions
# ---------------------------------------------------------------------------

SIDEBAR_WIDTH: Final[int] = 230
LOGIN_WINDOW_WIDTH: Final[int] = 480
LOGIN_WINDOW_HEIGHT: Final[int] = 640
MAIN_WINDOW_WIDTH: Final[int] = 1100
MAIN_WINDOW_HEIGHT: Final[int] = 720
CORNER_RADIUS: Final[int] = 8
PADDING_SM: Final[int] = 8
PADDING_MD: Final[int] = 16
PADDING_LG: Final[int] = 24
INPUT_HEIGHT: Final[int] = 40
BUTTON_HEIGHT: Final[int] = 42
