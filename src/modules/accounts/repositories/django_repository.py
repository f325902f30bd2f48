"""Django ORM implementation of the identity store."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.accounts.models import Identity, Role
from modules.accounts.repositories.interfaces import IIdentityStore

logger = structlog.get_logger(__name__)


class IdentityDjangoRepository(IIdentityStore):
    """Concrete identity store backed by Django ORM."""

    def get_by_id(self, id: Any) -> Optional[Identity]:
        try:
            return Identity.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_active(self, id: Any) -> Optional[Identity]:
        try:
            return Identity.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: Any) -> Optional[Identity]:
        """Must run inside a transaction."""
        try:
            return Identity.objects.select_for_update().alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_email(self, email: str) -> Optional[Identity]:
        return Identity.objects.filter(email__iexact=email.strip()).first()

    def email_taken(self, email: str, exclude_id: Any = None) -> bool:
        queryset = Identity.objects.filter(email__iexact=email.strip())
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.exists()

    def lock_super_admins(self) -> List[Identity]:
        return list(
            Identity.objects.select_for_update()
            .alive()
            .filter(role=Role.SUPER_ADMIN)
            .order_by("id")
        )

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Identity]:
        queryset = Identity.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: Identity) -> Identity:
        entity.save()
        logger.info("identity.saved", identity_id=str(entity.id))
        return entity
