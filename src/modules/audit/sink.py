"""Audit sink: the write-only channel for security and business events.

Services receive an ``IAuditSink`` through their constructor and call the
category helpers (``unauthorized_access``, ``admin_action``, ...).  They
never read audit data back.

Lifecycle is explicit: the ``audit`` app builds the configured sink in
``AuditConfig.ready()``, opens it, and closes it at interpreter exit.
Writing to a closed sink is a programming error and raises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

import structlog
from django.utils import timezone

from modules.audit.models import AuditCategory, AuditEvent, AuditLevel

logger = structlog.get_logger("audit")


@dataclass(frozen=True)
class AuditRecord:
    level: str
    category: str
    action: str
    actor: str = ""
    subject: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=timezone.now)


class SinkClosedError(RuntimeError):
    """Raised when writing to a sink that is not open."""


def normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return value.hex
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {str(key): normalize_for_json(val) for key, val in value.items()}
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _as_ref(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, UUID):
        return value.hex
    return str(getattr(value, "pk", value))


class IAuditSink(ABC):
    """Append-only event sink.  Subclasses implement ``write``."""

    def __init__(self) -> None:
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    @abstractmethod
    def write(self, record: AuditRecord) -> None:
        """Persist a single record."""

    def record(
        self,
        level: str,
        category: str,
        action: str,
        *,
        actor: Any = None,
        subject: Any = None,
        **context: Any,
    ) -> AuditRecord:
        if not self._open:
            raise SinkClosedError(f"Audit sink {type(self).__name__} is not open.")
        from modules.core.middleware import correlation_id_var

        payload = normalize_for_json(context)
        correlation_id = correlation_id_var.get()
        if correlation_id:
            payload.setdefault("correlation_id", correlation_id)
        record = AuditRecord(
            level=str(level),
            category=str(category),
            action=action,
            actor=_as_ref(actor),
            subject=_as_ref(subject),
            context=payload,
        )
        self.write(record)
        return record

    # ------------------------------------------------------------------
    # Category helpers
    # ------------------------------------------------------------------

    def unauthorized_access(self, action: str, **kwargs: Any) -> AuditRecord:
        return self.record(
            AuditLevel.SECURITY, AuditCategory.UNAUTHORIZED_ACCESS, action, **kwargs
        )

    def admin_action(self, action: str, **kwargs: Any) -> AuditRecord:
        return self.record(AuditLevel.ADMIN, AuditCategory.ADMIN_ACTION, action, **kwargs)

    def user_action(self, action: str, **kwargs: Any) -> AuditRecord:
        return self.record(AuditLevel.USER, AuditCategory.USER_ACTION, action, **kwargs)

    def security_violation(self, action: str, **kwargs: Any) -> AuditRecord:
        return self.record(
            AuditLevel.CRITICAL, AuditCategory.SECURITY_VIOLATION, action, **kwargs
        )

    def error(self, action: str, **kwargs: Any) -> AuditRecord:
        return self.record(AuditLevel.ERROR, AuditCategory.ERROR, action, **kwargs)


class LogAuditSink(IAuditSink):
    """Emits records as structured log lines on the ``audit`` logger."""

    def write(self, record: AuditRecord) -> None:
        log = logger.bind(
            audit_level=record.level,
            audit_category=record.category,
            actor=record.actor,
            subject=record.subject,
            **record.context,
        )
        if record.level in (AuditLevel.CRITICAL, AuditLevel.ERROR):
            log.error(record.action)
        elif record.level == AuditLevel.SECURITY:
            log.warning(record.action)
        else:
            log.info(record.action)


class DatabaseAuditSink(LogAuditSink):
    """Persists every record as an ``AuditEvent`` row and logs it."""

    def write(self, record: AuditRecord) -> None:
        AuditEvent.objects.create(
            created_at=record.timestamp,
            level=record.level,
            category=record.category,
            action=record.action,
            actor=record.actor,
            subject=record.subject[:255],
            context=record.context,
        )
        super().write(record)


SINK_BACKENDS = {
    "database": DatabaseAuditSink,
    "log": LogAuditSink,
}


def build_audit_sink(backend: str) -> IAuditSink:
    try:
        return SINK_BACKENDS[backend]()
    except KeyError:
        raise ValueError(f"Unknown AUDIT_SINK_BACKEND {backend!r}.") from None


def get_audit_sink() -> IAuditSink:
    """Return the process sink owned by the ``audit`` app."""
    from django.apps import apps

    return apps.get_app_config("audit").sink
