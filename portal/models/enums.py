"""
Shared Enumerations.

StrEnum values compare equal to their string equivalents, so
``user.role == "admin"`` keeps working while unknown roles are rejected
at the model boundary.
"""

from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    """The two roles a portal account can hold."""

    USER = "user"
    ADMIN = "admin"


class Capability(StrEnum):
    """Access requirement attached to a route or a guarded service call."""

    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class SessionState(StrEnum):
    """States of the session context."""

    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
