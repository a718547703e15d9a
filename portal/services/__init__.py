"""
Business Logic Services Package.

The ``create_services()`` factory wires storage, the authentication
backend, the services and the session context together, returning a
typed dict that the application layer (views / shell) can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from portal.auth import SessionContext
from portal.config import AppConfig
from portal.database import DatabaseManager
from portal.logger import StructuredLogger, get_logger
from portal.services.auth_backend import AuthBackend, MockAuthBackend
from portal.services.auth_service import AuthService
from portal.services.local_storage import LocalStorageService
from portal.services.supabase_backend import SupabaseAuthBackend
from portal.services.token_store import TokenStore
from portal.services.users import UserService


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    # --- Infrastructure ---
    local_storage: LocalStorageService
    token_store: TokenStore
    auth_backend: AuthBackend

    # --- Core ---
    auth_service: AuthService
    session: SessionContext
    user_service: UserService


def create_backend(config: AppConfig, logger: StructuredLogger) -> AuthBackend:
    """Build the backend selected by ``AUTH_BACKEND``."""
    if config.AUTH_BACKEND == "supabase":
        return SupabaseAuthBackend(
            url=config.SUPABASE_URL,
            anon_key=config.SUPABASE_ANON_KEY.get_secret_value(),
            service_role_key=config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
            logger=logger,
        )
    return MockAuthBackend(
        logger=logger,
        latency_s=config.MOCK_LATENCY_S,
        admin_emails=config.admin_emails,
    )


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    backend: Optional[AuthBackend] = None,
) -> ServiceContainer:
    """
    Wire all services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup and passes the
    returned dict to the shell and views.

    Args:
        db: Initialised DatabaseManager with the schema applied.
        config: Application configuration.
        backend: Override for the configured backend (tests).

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    # ------------------------------------------------------------------
    # 1. Storage
    # ------------------------------------------------------------------
    local_storage = LocalStorageService(db=db, logger=logger)
    token_store = TokenStore(
        storage=local_storage,
        logger=logger,
        key=config.TOKEN_STORAGE_KEY,
        kdf_iterations=config.TOKEN_KDF_ITERATIONS,
    )

    # ------------------------------------------------------------------
    # 2. Backend + auth
    # ------------------------------------------------------------------
    if backend is None:
        backend = create_backend(config, logger)
    auth_service = AuthService(
        backend=backend,
        logger=logger,
        password_min_length=config.PASSWORD_MIN_LENGTH,
    )

    # ------------------------------------------------------------------
    # 3. Session + services that depend on it
    # ------------------------------------------------------------------
    session = SessionContext(
        auth_service=auth_service,
        token_store=token_store,
        logger=get_logger("session"),
    )
    user_service = UserService(
        backend=backend,
        session=session,
        logger=logger,
        db=db,
    )

    logger.info("Services initialised (backend: %s).", config.AUTH_BACKEND)

    return ServiceContainer(
        local_storage=local_storage,
        token_store=token_store,
        auth_backend=backend,
        auth_service=auth_service,
        session=session,
        user_service=user_service,
    )
