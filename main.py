"""
Account Portal Desktop Application Entry Point.

Bootstraps the entire dependency graph via constructor injection,
initialises the local SQLite schema, registers the routes and launches
the CustomTkinter GUI.  Every subsystem is wired here; there are no
module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys
import traceback
from pathlib import Path

from portal.config import get_config
from portal.database import DatabaseManager
from portal.logger import StructuredLogger, get_logger
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
from portal.services import create_services
from portal.ui.app_shell import AppShell
from portal.ui.login_view import REGISTER_TAB, SIGN_IN_TAB, LoginView
from portal.ui.views.admin_view import AdminView
from portal.ui.views.dashboard_view import DashboardView


def main() -> None:
    """Application entry point: wire dependencies and launch the GUI."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting Account Portal...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (local SQLite: token storage + audit log)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
    )

    # close() is idempotent; this covers exits that skip the finally below.
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. SQLite Schema Initialization (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Service Container (storage, backend, auth, session, users)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)
    session = services["session"]

    # ------------------------------------------------------------------
    # 5. Route Registry
    # ------------------------------------------------------------------
    registry = RouteRegistry(logger=get_logger("routing"))

    registry.register(
        LOGIN_PATH,
        "Sign In",
        lambda parent, navigate: LoginView(
            parent=parent,
            session=session,
            logger=get_logger("login"),
            initial_tab=SIGN_IN_TAB,
        ),
        Capability.PUBLIC,
    )
    registry.register(
        REGISTER_PATH,
        "Create Account",
        lambda parent, navigate: LoginView(
            parent=parent,
            session=session,
            logger=get_logger("login"),
            initial_tab=REGISTER_TAB,
        ),
        Capability.PUBLIC,
    )
    registry.register(
        DASHBOARD_PATH,
        "Dashboard",
        lambda parent, navigate: DashboardView(
            parent=parent,
            session=session,
            navigate=navigate,
            logger=get_logger("dashboard"),
        ),
        Capability.AUTHENTICATED,
        in_sidebar=True,
    )
    registry.register(
        ADMIN_PATH,
        "Admin Panel",
        lambda parent, navigate: AdminView(
            parent=parent,
            user_service=services["user_service"],
            navigate=navigate,
            logger=get_logger("admin"),
        ),
        Capability.ADMIN,
        in_sidebar=True,
    )
    registry.add_redirect(ROOT_PATH, DASHBOARD_PATH)

    # ------------------------------------------------------------------
    # 6. Launch the GUI (blocks until window closes)
    # ------------------------------------------------------------------
    logger.info("Launching GUI...")
    app = AppShell(
        session=session,
        auth_service=services["auth_service"],
        registry=registry,
        logger=get_logger("ui"),
    )
    try:
        app.mainloop()
    finally:
        db.close()
        logger.info("Account Portal shut down.")


def _show_fatal_error(exc: BaseException) -> None:
    """Display a fatal-error dialog so double-click users get feedback.

    Uses ``tkinter.messagebox`` rather than CustomTkinter so the dialog
    works even when CTk initialisation itself is the thing that failed.
    """
    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    try:
        import tkinter
        from tkinter import messagebox

        root = tkinter.Tk()
        root.withdraw()
        messagebox.showerror(
            title="Account Portal: Fatal Error",
            message=(
                "The application encountered an unexpected error and "
                "cannot continue.\n\n"
                f"{type(exc).__name__}: {exc}"
            ),
            detail=detail,
        )
        root.destroy()
    except Exception:
        # Headless or missing Tcl/Tk: fall back to stderr.
        sys.stderr.write(
            f"FATAL: {type(exc).__name__}: {exc}\n{detail}"
        )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        _show_fatal_error(exc)
        sys.exit(1)
