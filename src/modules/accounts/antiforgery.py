"""Anti-forgery tokens for mutating admin requests.

Tokens are stateless: a ``TimestampSigner`` signature over the acting
session (identity id plus the ``sid`` claim of its access token).  A token
issued to one session is useless in another and expires after
``ANTI_FORGERY_MAX_AGE`` seconds.  Clients send it in ``X-CSRF-Token``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import structlog
from django.conf import settings
from django.core.signing import BadSignature, SignatureExpired, TimestampSigner
from django.utils.crypto import constant_time_compare
from rest_framework.permissions import SAFE_METHODS, BasePermission

from modules.accounts.exceptions import InvalidAntiForgeryToken
from modules.core.exceptions import Unauthenticated

if TYPE_CHECKING:
    from modules.audit.sink import IAuditSink

logger = structlog.get_logger(__name__)

HEADER_NAME = "X-CSRF-Token"


def session_binding(caller: Any) -> str:
    """``<identity id>:<session id>``, falling back to the identity id alone."""
    if caller is None or not getattr(caller, "is_authenticated", False):
        raise Unauthenticated()
    token = getattr(caller, "token", None)
    sid = token.get("sid") if token is not None else None
    return f"{caller.id}:{sid}" if sid else str(caller.id)


class AntiForgeryTokenService:
    salt = "storefront.antiforgery"

    def __init__(self, audit_sink: IAuditSink, max_age: Optional[int] = None) -> None:
        self._audit = audit_sink
        self.max_age = max_age if max_age is not None else settings.ANTI_FORGERY_MAX_AGE
        self._signer = TimestampSigner(salt=self.salt)

    def issue(self, caller: Any) -> str:
        return self._signer.sign(session_binding(caller))

    def verify(self, caller: Any, token: Optional[str], endpoint: str = "") -> None:
        binding = session_binding(caller)
        reason = None
        if not token:
            reason = "missing"
        else:
            try:
                value = self._signer.unsign(token, max_age=self.max_age)
            except SignatureExpired:
                reason = "expired"
            except BadSignature:
                reason = "tampered"
            else:
                if not constant_time_compare(value, binding):
                    reason = "foreign_session"

        if reason is not None:
            self._audit.security_violation(
                "invalid_csrf_token",
                actor=caller.id,
                subject=endpoint,
                endpoint=endpoint,
                reason=reason,
            )
            logger.warning("antiforgery.rejected", reason=reason, endpoint=endpoint)
            raise InvalidAntiForgeryToken()


class AntiForgeryTokenRequired(BasePermission):
    """DRF permission enforcing the token on unsafe methods.

    List it after ``IsAuthenticated`` so anonymous callers get a 401 first.
    """

    def has_permission(self, request, view) -> bool:
        if request.method in SAFE_METHODS:
            return True
        from modules.audit.sink import get_audit_sink

        AntiForgeryTokenService(get_audit_sink()).verify(
            request.user, request.headers.get(HEADER_NAME), endpoint=request.path
        )
        return True
