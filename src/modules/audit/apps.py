import atexit

from django.apps import AppConfig
from django.conf import settings


class AuditConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.audit"
    label = "audit"

    sink = None

    def ready(self) -> None:
        from modules.audit.sink import build_audit_sink

        self.sink = build_audit_sink(getattr(settings, "AUDIT_SINK_BACKEND", "database"))
        self.sink.open()
        atexit.register(self.sink.close)
