"""Test configuration and fixtures."""

import logging

import pytest

from portal.auth import SessionContext
from portal.database import DatabaseManager
from portal.logger import StructuredLogger
from portal.models.enums import Capability
from portal.routing import (
    ADMIN_PATH,
    DASHBOARD_PATH,
    LOGIN_PATH,
    REGISTER_PATH,
    ROOT_PATH,
    RouteRegistry,
)
from portal.schema import initialize_schema
from portal.services.auth_backend import MockAuthBackend
from portal.services.auth_service import AuthService
from portal.services.local_storage import LocalStorageService
from portal.services.token_store import TokenStore
from portal.services.users import UserService

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "correct-horse"


@pytest.fixture(scope="session")
def logger(tmp_path_factory):
    """Structured logger writing to a temporary file."""
    log_file = tmp_path_factory.mktemp("logs") / "portal-tests.log"
    return StructuredLogger(name="portal.tests", level=logging.DEBUG, log_file=str(log_file))


@pytest.fixture
def db(logger):
    """In-memory database with the schema applied."""
    manager = DatabaseManager(":memory:", logger)
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def storage(db, logger):
    return LocalStorageService(db=db, logger=logger)


@pytest.fixture
def token_store(storage, logger):
    """Token store with a fixed identity and a cheap KDF."""
    return TokenStore(
        storage=storage,
        logger=logger,
        kdf_iterations=1_000,
        identity="test-host:tester",
    )


@pytest.fixture
def backend(logger):
    """Mock backend without latency."""
    return MockAuthBackend(
        logger=logger,
        latency_s=0,
        admin_emails=frozenset({ADMIN_EMAIL}),
        hash_iterations=1_000,
    )


@pytest.fixture
def auth_service(backend, logger):
    return AuthService(backend=backend, logger=logger, password_min_length=8)


@pytest.fixture
def session(auth_service, token_store, logger):
    return SessionContext(auth_service=auth_service, token_store=token_store, logger=logger)


@pytest.fixture
def user_service(backend, session, logger, db):
    return UserService(backend=backend, session=session, logger=logger, db=db)


@pytest.fixture
def registry(logger):
    """Route table laid out like the application's, with placeholder views."""
    routes = RouteRegistry(logger)
    routes.register(LOGIN_PATH, "Sign In", lambda parent, navigate: "login", Capability.PUBLIC)
    routes.register(
        REGISTER_PATH, "Create Account", lambda parent, navigate: "register", Capability.PUBLIC,
    )
    routes.register(
        DASHBOARD_PATH, "Dashboard", lambda parent, navigate: "dashboard",
        Capability.AUTHENTICATED, in_sidebar=True,
    )
    routes.register(
        ADMIN_PATH, "Admin Panel", lambda parent, navigate: "admin",
        Capability.ADMIN, in_sidebar=True,
    )
    routes.add_redirect(ROOT_PATH, DASHBOARD_PATH)
    return routes
