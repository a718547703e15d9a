"""
Structured Audit Logging Utility.

Account state changes made by administrators are logged as a
pydantic-validated JSON object and, when a connection is supplied,
persisted to the ``audit_log`` table.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from portal.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event", "persist_audit_event"]

# Flat scalars only; nested structures are not smuggled through the audit log.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    conn: Optional[sqlite3.Connection] = None,
    lock: Optional[threading.RLock] = None,
) -> AuditEvent:
    """Log a structured audit event, with optional SQLite persistence.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"UPDATE_PROFILE"``, ``"UPDATE_ROLE"``).
        entity_type: Type of entity affected (e.g. ``"User"``).
        entity_id: Primary key of the affected entity.
        user_id: ID of the user who performed the action.
        details: Optional additional context (e.g. old/new values).
        conn: Optional SQLite connection; when given the event is also
            written to ``audit_log``.  Persistence failures are logged,
            never raised.
        lock: Write lock guarding *conn*.

    Returns:
        The validated event.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info(
        "AUDIT: %s",
        json.dumps(event.model_dump(), default=str),
        extra={"event": "AUDIT", "action": action},
    )

    if conn is not None:
        try:
            if lock is not None:
                with lock:
                    persist_audit_event(conn, event)
            else:
                persist_audit_event(conn, event)
        except sqlite3.Error as db_err:
            logger.warning("Failed to persist audit event to SQLite: %s", db_err)

    return event


def persist_audit_event(conn: sqlite3.Connection, event: AuditEvent) -> None:
    """Write a validated event to the ``audit_log`` table and commit."""
    conn.execute(
        """
        INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            event.timestamp,
            event.action,
            event.entity_type,
            event.entity_id,
            event.user_id,
            json.dumps(event.details, default=str),
        ),
    )
    conn.commit()
