"""Authorization gate.

Every sensitive operation passes through ``AuthorizationGate`` before it
touches domain state.  Rules:

- The caller's identity is re-read from the identity store on every call.
  Role claims carried by the session token are never trusted.
- A missing or soft-deleted identity is an invalid session, not a 403.
- Resource ownership mismatches are reported to non-admins as ``NotFound``
  so that probing ids reveals nothing.  Only admins see the precise
  ``NotFound`` / ``Forbidden`` distinction.
- Every denial is written to the audit sink with the actor and endpoint.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID

import structlog

from modules.accounts.exceptions import InvalidResourceId
from modules.core.exceptions import Forbidden, InvalidSession, NotFound, Unauthenticated

if TYPE_CHECKING:
    from modules.accounts.models import Identity
    from modules.accounts.repositories.interfaces import IIdentityStore
    from modules.audit.sink import IAuditSink
    from modules.core.repositories.interfaces import IRepository

logger = structlog.get_logger(__name__)

_ID_PATTERN = re.compile(r"[0-9a-fA-F]{32}")


def is_well_formed_id(value: Any) -> bool:
    """Check the 32-character hexadecimal id shape without touching storage."""
    if isinstance(value, UUID):
        return True
    return isinstance(value, str) and _ID_PATTERN.fullmatch(value) is not None


def _as_uuid(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Ownership:
    identity: Identity
    resource: Any
    is_admin_access: bool


class AuthorizationGate:
    def __init__(self, identity_store: IIdentityStore, audit_sink: IAuditSink) -> None:
        self._identities = identity_store
        self._audit = audit_sink

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def authenticate(self, caller: Any, endpoint: str = "") -> Identity:
        """Resolve the caller to a live identity."""
        caller_id = (
            getattr(caller, "id", None)
            if caller is not None and getattr(caller, "is_authenticated", False)
            else None
        )
        if caller_id is None:
            self._audit.unauthorized_access(
                "unauthenticated_request", subject=endpoint, endpoint=endpoint
            )
            raise Unauthenticated()

        identity = self._identities.get_active(caller_id)
        if identity is None:
            self._audit.unauthorized_access(
                "invalid_session", actor=caller_id, subject=endpoint, endpoint=endpoint
            )
            raise InvalidSession()
        return identity

    def check_admin(
        self, caller: Any, require_super_admin: bool = False, endpoint: str = ""
    ) -> Identity:
        identity = self.authenticate(caller, endpoint)
        allowed = identity.is_super_admin if require_super_admin else identity.is_admin
        if not allowed:
            self._audit.unauthorized_access(
                "insufficient_role",
                actor=identity.id,
                subject=endpoint,
                endpoint=endpoint,
                role=identity.get_role_display(),
                required="super_admin" if require_super_admin else "admin",
            )
            raise Forbidden()
        return identity

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def check_ownership(
        self,
        caller: Any,
        repository: IRepository,
        resource_id: Any,
        owner_field: str = "owner_id",
        allow_admin_override: bool = True,
        endpoint: str = "",
    ) -> Ownership:
        identity = self.authenticate(caller, endpoint)
        if not is_well_formed_id(resource_id):
            raise InvalidResourceId()

        resource = repository.get_by_id(resource_id)
        resource_type = repository.resource_type

        if identity.is_admin and allow_admin_override:
            if resource is None:
                raise NotFound()
            self._audit.admin_action(
                f"admin_{resource_type}_access",
                actor=identity.id,
                subject=resource.pk,
                endpoint=endpoint,
            )
            return Ownership(identity=identity, resource=resource, is_admin_access=True)

        if resource is None:
            raise NotFound()

        owner_id = _as_uuid(getattr(resource, owner_field, None))
        if owner_id != _as_uuid(identity.id):
            self._audit.unauthorized_access(
                "resource_access_violation",
                actor=identity.id,
                subject=resource.pk,
                endpoint=endpoint,
                resource_type=resource_type,
            )
            logger.warning(
                "access.ownership_mismatch",
                identity_id=str(identity.id),
                resource_type=resource_type,
            )
            if identity.is_admin:
                raise Forbidden()
            raise NotFound()

        return Ownership(identity=identity, resource=resource, is_admin_access=False)
