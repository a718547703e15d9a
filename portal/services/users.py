"""
User Management Service.

Handles administrative user operations: listing accounts and changing
roles.  Both are admin-only and go through the backend with the
session's token; role changes are written to the audit log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from portal.database import DatabaseManager
from portal.exceptions import AuthError
from portal.logger import StructuredLogger
from portal.models.auth_models import AuthErrorCode
from portal.models.enums import Capability, UserRole
from portal.models.user import UserProfile
from portal.routing import require_capability
from portal.services.auth_backend import AuthBackend
from portal.services.base_service import BaseService
from portal.utils.audit import log_audit_event

if TYPE_CHECKING:
    from portal.auth import SessionContext


class UserService(BaseService):
    """Service layer for admin user management operations.

    Parameters
    ----------
    backend:
        The authentication backend holding the account directory.
    session:
        Session context supplying the acting admin and token.
    logger:
        Structured logger instance.
    db:
        Optional database; when given, audit events are persisted.
    """

    def __init__(
        self,
        backend: AuthBackend,
        session: "SessionContext",
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._backend = backend
        self._session = session
        self._db = db

        admin_only = require_capability(session, Capability.ADMIN)
        self.list_users = admin_only(self._list_users)
        self.update_user_role = admin_only(self._update_user_role)

    def _list_users(self) -> list[UserProfile]:
        """Fetch every account for the admin dashboard."""
        users = self._backend.list_users(self._token())
        self._logger.debug("Fetched %d users.", len(users))
        return users

    def _update_user_role(self, user_id: str, new_role: str) -> UserProfile:
        """Change the role of *user_id*.

        Raises
        ------
        AuthError
            ``VALIDATION_ERROR`` for a role outside ``UserRole``, or the
            backend's error (``USER_NOT_FOUND``, ``FORBIDDEN`` ...).
        """
        try:
            validated_role = UserRole(new_role)
        except ValueError:
            raise AuthError(
                AuthErrorCode.VALIDATION_ERROR,
                f"Invalid role specified: '{new_role}'. "
                f"Must be one of: {', '.join(r.value for r in UserRole)}.",
            ) from None

        acting_user = self._session.require_user()
        updated = self._backend.update_user_role(self._token(), user_id, validated_role)

        log_audit_event(
            logger=self._logger,
            action="UPDATE_ROLE",
            entity_type="User",
            entity_id=user_id,
            user_id=acting_user.id,
            details={"email": updated.email, "new_role": str(validated_role)},
            conn=self._db.sqlite if self._db is not None else None,
            lock=self._db.write_lock if self._db is not None else None,
        )

        if updated.id == acting_user.id:
            # Guards read the session, so it must see the new role.
            self._session.replace_profile(updated)
        return updated

    def _token(self) -> str:
        token = self._session.token
        if token is None:
            raise AuthError(
                AuthErrorCode.NOT_AUTHENTICATED,
                "Authentication required. Please log in.",
            )
        return token
