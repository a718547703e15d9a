"""
User Profile Models.

``UserProfile`` is what the backend returns for an account;
``ProfileUpdate`` is the partial payload the settings editor submits.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from portal.models.enums import UserRole

# Fields a user may edit from the settings screen, in display order.
EDITABLE_FIELDS: tuple[str, ...] = (
    "name",
    "email",
    "address",
    "billing_address",
    "phone_number",
    "location",
    "vat_number",
)


class UserProfile(BaseModel):
    """Represents a portal account.

    ``role`` is a closed enumeration; any other value fails validation.
    Contact and billing fields are optional and default to empty.
    """

    id: str
    email: str
    name: str
    role: UserRole = UserRole.USER
    address: str = ""
    billing_address: str = ""
    phone_number: str = ""
    location: str = ""
    vat_number: Optional[str] = None

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ProfileUpdate(BaseModel):
    """Partial profile update.

    Only fields that were explicitly set are applied; use
    :meth:`changes` rather than ``model_dump()`` to read them.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    billing_address: Optional[str] = None
    phone_number: Optional[str] = None
    location: Optional[str] = None
    vat_number: Optional[str] = None

    model_config = {"extra": "forbid"}

    @classmethod
    def from_form(cls, profile: UserProfile, values: dict[str, str]) -> "ProfileUpdate":
        """Build an update holding only the form values that differ from *profile*.

        Unknown keys in *values* are ignored.
        """
        changed: dict[str, str] = {}
        for field in EDITABLE_FIELDS:
            if field in values and values[field] != (getattr(profile, field) or ""):
                changed[field] = values[field]
        return cls(**changed)

    def changes(self) -> dict[str, Optional[str]]:
        """Return only the explicitly supplied fields."""
        return self.model_dump(exclude_unset=True)

    def apply_to(self, profile: UserProfile) -> UserProfile:
        """Return a copy of *profile* with the supplied fields merged in."""
        return profile.model_copy(update=self.changes())
