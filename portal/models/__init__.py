from __future__ import annotations

"""
Data Models Package.

Re-exports the pydantic models and enumerations:
    from portal.models import UserProfile, ProfileUpdate, UserRole
    from portal.models import AuthSession, AuthErrorCode
"""

from portal.models.enums import Capability, SessionState, UserRole
from portal.models.user import EDITABLE_FIELDS, ProfileUpdate, UserProfile
from portal.models.auth_models import AuthErrorCode, AuthSession, ValidationResult

__all__ = [
    "AuthErrorCode",
    "AuthSession",
    "Capability",
    "EDITABLE_FIELDS",
    "ProfileUpdate",
    "SessionState",
    "UserProfile",
    "UserRole",
    "ValidationResult",
]
