"""
Local Database Connection.

The portal keeps exactly one local SQLite file.  It stands in for the
browser's durable local storage: the session token lives in the
``local_storage`` key-value table and audit events in ``audit_log``.
This module only manages the connection; queries live with the
services that own each table.

Usage (dependency injection at app startup)::

    from portal.database import DatabaseManager
    from portal.logger import StructuredLogger

    db = DatabaseManager(
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="portal.database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Union

from portal.logger import StructuredLogger


class DatabaseManager:
    """Owns the local SQLite connection.

    The connection is opened with ``check_same_thread=False`` because
    backend calls run on worker threads; every write must hold
    :attr:`write_lock`.

    Parameters
    ----------
    sqlite_path:
        Filesystem path for the SQLite file, or ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the write lock for thread-safe SQLite operations::

            with db.write_lock:
                db.sqlite.execute("INSERT ...")
                db.sqlite.commit()
        """
        return self._write_lock

    def close(self) -> None:
        """Close the SQLite connection.  Safe to call multiple times."""
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    def _connect_sqlite(self, path: Union[Path, str]) -> sqlite3.Connection:
        """Open (or create) the SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory,
            re-raised with a message the UI can show.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
