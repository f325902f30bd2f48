"""Identity service layer (Use Cases).

Business rules enforced here:
- Email is unique across all identities, deleted ones included (their
  addresses are anonymized, so the original address becomes free again).
- Passwords pass Django's ``AUTH_PASSWORD_VALIDATORS`` before being set.
- First login through an external provider creates the identity with an
  unusable password; later logins reuse it.
- Role changes and deletions go through ``RoleHierarchyEnforcer``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

import structlog
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError

from modules.accounts.exceptions import EmailAlreadyRegistered
from modules.accounts.models import AuthProvider, Identity, Role
from modules.core.exceptions import InvalidRequest, InvalidSession

if TYPE_CHECKING:
    from modules.accounts.dtos import (
        AdminUpdateIdentityDTO,
        RegisterIdentityDTO,
        UpdateProfileDTO,
    )
    from modules.accounts.hierarchy import RoleHierarchyEnforcer
    from modules.accounts.repositories.interfaces import IIdentityStore
    from modules.audit.sink import IAuditSink
    from modules.core.unit_of_work import IUnitOfWork

logger = structlog.get_logger(__name__)


class IdentityService:
    def __init__(
        self,
        identity_store: IIdentityStore,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
        hierarchy: Optional[RoleHierarchyEnforcer] = None,
    ) -> None:
        self._identities = identity_store
        self._uow = unit_of_work
        self._audit = audit_sink
        self._hierarchy = hierarchy

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_password(password: str, identity: Optional[Identity] = None) -> None:
        try:
            validate_password(password, user=identity)
        except DjangoValidationError as exc:
            raise InvalidRequest(errors=exc.messages, code="weak_password") from exc

    def _ensure_email_free(self, email: str, exclude_id: Any = None) -> None:
        if self._identities.email_taken(email, exclude_id=exclude_id):
            logger.warning("identity.duplicate_email")
            raise EmailAlreadyRegistered()

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------

    def register(self, dto: RegisterIdentityDTO) -> Identity:
        self._ensure_email_free(dto.email)
        identity = Identity(name=dto.name, email=dto.email, role=Role.USER)
        self._check_password(dto.password, identity)
        identity.set_password(dto.password)
        identity = self._uow.with_transaction(lambda: self._identities.save(identity))
        self._audit.user_action("user_registered", actor=identity.id, subject=identity.id)
        logger.info("identity.registered", identity_id=str(identity.id))
        return identity

    def update_profile(self, identity: Identity, dto: UpdateProfileDTO) -> Identity:
        changed: List[str] = []
        if dto.email is not None and dto.email.lower() != identity.email:
            self._ensure_email_free(dto.email, exclude_id=identity.pk)
            identity.email = dto.email
            changed.append("email")
        if dto.name is not None and dto.name != identity.name:
            identity.name = dto.name
            changed.append("name")
        if dto.password is not None:
            if identity.auth_provider != AuthProvider.CREDENTIALS:
                raise InvalidRequest(
                    "Accounts signed in through an external provider have no password.",
                    code="external_identity",
                )
            self._check_password(dto.password, identity)
            identity.set_password(dto.password)
            changed.append("password")

        if changed:
            identity = self._uow.with_transaction(lambda: self._identities.save(identity))
            self._audit.user_action(
                "profile_updated", actor=identity.id, subject=identity.id, fields=changed
            )
            logger.info("identity.profile_updated", identity_id=str(identity.id), fields=changed)
        return identity

    def resolve_external_identity(
        self, email: str, name: str, provider: str
    ) -> Identity:
        """Find or create the identity behind an external-provider login."""
        if provider not in AuthProvider.values or provider == AuthProvider.CREDENTIALS:
            raise InvalidRequest(f"Unsupported auth provider: {provider}.")

        existing = self._identities.get_by_email(email)
        if existing is not None:
            if existing.is_deleted:
                raise InvalidSession()
            return existing

        identity = Identity(
            name=(name or email.split("@")[0]).strip()[:100],
            email=email,
            role=Role.USER,
            auth_provider=provider,
        )
        identity.set_unusable_password()
        identity = self._uow.with_transaction(lambda: self._identities.save(identity))
        self._audit.user_action(
            "user_registered", actor=identity.id, subject=identity.id, provider=provider
        )
        logger.info(
            "identity.external_registered", identity_id=str(identity.id), provider=provider
        )
        return identity

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def list_identities(self, role: Optional[Role] = None) -> List[Identity]:
        return self._identities.list({"role": role} if role is not None else None)

    def admin_update(
        self, actor: Identity, target_id: Any, dto: AdminUpdateIdentityDTO
    ) -> Identity:
        hierarchy = self._hierarchy

        def work():
            target = hierarchy.load_target(target_id)
            previous = hierarchy.apply_role(actor, target, dto.role)
            if dto.email is not None and dto.email.lower() != target.email:
                self._ensure_email_free(dto.email, exclude_id=target.pk)
                target.email = dto.email
            if dto.name is not None:
                target.name = dto.name
            self._identities.save(target)
            return target, previous

        target, previous = hierarchy.run_audited(actor, target_id, work)
        if previous is not None:
            hierarchy.record_role_change(actor, target, previous)
        self._audit.admin_action("user_updated", actor=actor.id, subject=target.id)
        return target

    def admin_delete(self, actor: Identity, target_id: Any) -> Identity:
        return self._hierarchy.delete_identity(actor, target_id)
