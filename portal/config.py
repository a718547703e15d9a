"""
Application Configuration.

Pydantic Settings model for the Account Portal application.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Auth backend ---
    AUTH_BACKEND: Literal["mock", "supabase"] = "mock"
    MOCK_LATENCY_S: float = 1.0
    ADMIN_EMAILS: list[str] = Field(default_factory=lambda: ["admin@example.com"])
    PASSWORD_MIN_LENGTH: int = 8

    # --- Supabase (only used when AUTH_BACKEND == "supabase") ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")  # admin user list / role changes

    # --- Local storage ---
    LOCAL_DB_PATH: str = "portal_local.db"
    TOKEN_STORAGE_KEY: str = "token"
    TOKEN_KDF_ITERATIONS: int = 200_000

    # --- Logging ---
    LOG_FILE: str = "portal.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when configuration looks incomplete.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a log line instead.
        """
        _log = logging.getLogger("portal.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if self.AUTH_BACKEND == "supabase" and not self.SUPABASE_URL:
            _log.warning(
                "AUTH_BACKEND is 'supabase' but SUPABASE_URL is empty; "
                "every sign-in attempt will fail."
            )

        return self

    @property
    def admin_emails(self) -> frozenset[str]:
        """Normalised set of emails that are provisioned with the admin role."""
        return frozenset(email.strip().lower() for email in self.ADMIN_EMAILS)


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path skips the lock
    while first initialisation stays thread-safe.  Prefer constructor
    injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
