"""
Local Storage Service.

Durable key-value storage over the ``local_storage`` table, the desktop
counterpart of a browser's ``localStorage``::

    CREATE TABLE IF NOT EXISTS local_storage (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )

Reads and writes never raise: failures are logged and reported through
the return value, matching how a browser storage quota error would be
tolerated by the page.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from portal.database import DatabaseManager
from portal.services.base_service import BaseService
from portal.logger import StructuredLogger


class LocalStorageService(BaseService):
    """Persistent string key-value store in local SQLite.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` with the schema applied.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._db = db

    def get(self, key: str) -> Optional[str]:
        """Read a value by key.  Returns ``None`` if not found."""
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM local_storage WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row is not None else None
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read local_storage[%s]: %s", key, exc)
            return None

    def set(self, key: str, value: str) -> bool:
        """Upsert a value.  Returns ``True`` on success."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO local_storage (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
            self._logger.debug("local_storage[%s] updated.", key)
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to write local_storage[%s]: %s", key, exc)
            return False

    def remove(self, key: str) -> bool:
        """Delete *key*.  Removing a missing key is a successful no-op."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    "DELETE FROM local_storage WHERE key = ?",
                    (key,),
                )
                self._db.sqlite.commit()
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to remove local_storage[%s]: %s", key, exc)
            return False
