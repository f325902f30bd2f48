"""Role-hierarchy enforcement for identity administration.

Business rules:
- Only a super admin may grant or revoke the admin / super admin roles,
  and only a super admin may modify or delete another administrator.
- An actor never strips its own privileged role nor deletes itself.
- The last non-deleted super admin cannot be demoted or deleted.  The
  super-admin rows are locked while they are counted, so two concurrent
  demotions cannot both pass the check.
- A user with a paid, undelivered order cannot be deleted.
- Deletion is a soft delete that anonymizes the email.

Denials are audited after the unit of work has rolled back, so the audit
record survives the aborted transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

import structlog
from django.utils import timezone

from modules.accounts.exceptions import (
    IdentityHasActiveOrders,
    IdentityNotFound,
    LastSuperAdmin,
    RoleChangeForbidden,
    SelfModificationRejected,
)
from modules.accounts.models import Identity, Role

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import IIdentityStore
    from modules.audit.sink import IAuditSink
    from modules.core.unit_of_work import IUnitOfWork
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")

EMAIL_MAX_LENGTH = 254


def anonymized_email(email: str, when=None) -> str:
    epoch = int((when or timezone.now()).timestamp())
    return f"deleted_{epoch}_{email}"[:EMAIL_MAX_LENGTH]


class RoleHierarchyEnforcer:
    def __init__(
        self,
        identity_store: IIdentityStore,
        order_repository: IOrderRepository,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
    ) -> None:
        self._identities = identity_store
        self._orders = order_repository
        self._uow = unit_of_work
        self._audit = audit_sink

    # ------------------------------------------------------------------
    # Guards (run inside the unit of work)
    # ------------------------------------------------------------------

    def load_target(self, target_id: Any) -> Identity:
        target = self._identities.get_for_update(target_id)
        if target is None:
            raise IdentityNotFound()
        return target

    def _ensure_may_administer(self, actor: Identity, target: Identity) -> None:
        if target.is_admin and not actor.is_super_admin and target.pk != actor.pk:
            raise RoleChangeForbidden(
                "Only a super admin can modify or delete administrators."
            )

    def _ensure_not_last_super_admin(self, target: Identity) -> None:
        if not target.is_super_admin:
            return
        others = [sa for sa in self._identities.lock_super_admins() if sa.pk != target.pk]
        if not others:
            raise LastSuperAdmin()

    def apply_role(
        self, actor: Identity, target: Identity, new_role: Optional[Role]
    ) -> Optional[Role]:
        """Validate and apply a role change on a locked ``target``.

        Returns the previous role when it changed, else ``None``.  The caller
        persists ``target`` inside the same unit of work.
        """
        self._ensure_may_administer(actor, target)
        if new_role is None or Role(new_role) == target.role:
            return None
        new_role = Role(new_role)

        if not actor.is_super_admin:
            raise RoleChangeForbidden()
        if target.pk == actor.pk and new_role < target.role:
            raise SelfModificationRejected("You cannot remove your own privileges.")
        if new_role < Role.SUPER_ADMIN:
            self._ensure_not_last_super_admin(target)

        previous = Role(target.role)
        target.role = new_role
        return previous

    def run_audited(self, actor: Identity, target_id: Any, work: Callable[[], T]) -> T:
        """Run ``work`` in the unit of work, auditing hierarchy denials."""
        try:
            return self._uow.with_transaction(work)
        except RoleChangeForbidden:
            self._audit.unauthorized_access(
                "admin_modification_denied", actor=actor.id, subject=target_id
            )
            raise
        except (LastSuperAdmin, SelfModificationRejected) as exc:
            self._audit.security_violation(
                exc.code, actor=actor.id, subject=target_id, reason=exc.public_message
            )
            raise

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def change_role(self, actor: Identity, target_id: Any, new_role: Role) -> Identity:
        def work():
            target = self.load_target(target_id)
            previous = self.apply_role(actor, target, new_role)
            if previous is not None:
                self._identities.save(target)
            return target, previous

        target, previous = self.run_audited(actor, target_id, work)
        if previous is not None:
            self.record_role_change(actor, target, previous)
        return target

    def record_role_change(self, actor: Identity, target: Identity, previous: Role) -> None:
        self._audit.admin_action(
            "role_changed",
            actor=actor.id,
            subject=target.id,
            previous_role=previous.label,
            new_role=Role(target.role).label,
        )
        logger.bind(actor_id=str(actor.id), target_id=str(target.id)).info(
            "identity.role_changed", new_role=Role(target.role).label
        )

    def delete_identity(self, actor: Identity, target_id: Any) -> Identity:
        def work():
            target = self.load_target(target_id)
            if target.pk == actor.pk:
                raise SelfModificationRejected("You cannot delete your own account.")
            self._ensure_may_administer(actor, target)
            self._ensure_not_last_super_admin(target)
            if self._orders.has_active_orders(target.pk):
                raise IdentityHasActiveOrders()

            now = timezone.now()
            original_email = target.email
            target.email = anonymized_email(original_email, now)
            target.deleted_at = now
            target.deleted_by = actor
            self._identities.save(target)
            return target, original_email

        target, original_email = self.run_audited(actor, target_id, work)
        self._audit.admin_action(
            "user_deleted",
            actor=actor.id,
            subject=target.id,
            deleted_email=original_email,
            role=Role(target.role).label,
        )
        logger.bind(actor_id=str(actor.id), target_id=str(target.id)).info(
            "identity.deleted"
        )
        return target
