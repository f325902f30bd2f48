"""Append-only audit event store.

``AuditEvent`` rows are written once and never changed: ``save()`` refuses
updates, and both the instance and queryset ``delete`` / ``update`` paths
raise.  The model intentionally inherits ``BaseModel`` (not
``SoftDeleteModel``). An audit trail has no lifecycle beyond creation.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class AuditLevel(models.TextChoices):
    SECURITY = "SECURITY", "Security"
    ADMIN = "ADMIN", "Admin"
    USER = "USER", "User"
    CRITICAL = "CRITICAL", "Critical"
    ERROR = "ERROR", "Error"


class AuditCategory(models.TextChoices):
    UNAUTHORIZED_ACCESS = "unauthorized_access", "Unauthorized access"
    ADMIN_ACTION = "admin_action", "Admin action"
    USER_ACTION = "user_action", "User action"
    SECURITY_VIOLATION = "security_violation", "Security violation"
    ERROR = "error", "Error"


class AppendOnlyError(Exception):
    """Raised on any attempt to mutate or remove an audit record."""


class AuditEventQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise AppendOnlyError("Audit events cannot be updated.")

    def delete(self):
        raise AppendOnlyError("Audit events cannot be deleted.")


class AuditEvent(BaseModel):
    level = models.CharField(max_length=16, choices=AuditLevel.choices)
    category = models.CharField(max_length=32, choices=AuditCategory.choices)
    action = models.CharField(max_length=100)
    actor = models.CharField(max_length=64, blank=True, default="")
    subject = models.CharField(max_length=255, blank=True, default="")
    context = models.JSONField(default=dict, blank=True)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        db_table = "audit_events"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["action"], name="audit_action_idx"),
            models.Index(fields=["level", "created_at"], name="audit_level_created_idx"),
        ]

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise AppendOnlyError("Audit events are write-once.")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise AppendOnlyError("Audit events cannot be deleted.")

    def __str__(self) -> str:
        return f"[{self.level}] {self.action} actor={self.actor or '-'}"
