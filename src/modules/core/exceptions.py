"""Service error taxonomy and the DRF exception handler.

Every domain exception in the project subclasses one of the classes below,
so the API layer can translate any of them into a response without knowing
the module that raised it.  Response bodies share one envelope::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Messages rendered to clients come from ``public_message`` only.  Unexpected
exceptions are rendered as a generic 500 and their traceback goes to the
audit sink, never to the response.
"""

from __future__ import annotations

import traceback
from typing import Any, Iterable, List, Optional

import structlog
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = structlog.get_logger(__name__)


class ServiceError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal server error."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        errors: Optional[Iterable[str]] = None,
        code: Optional[str] = None,
    ) -> None:
        self.public_message = message or self.default_message
        self.errors: List[str] = list(errors or [])
        if code:
            self.code = code
        super().__init__(self.public_message)


class Unauthenticated(ServiceError):
    """No session, or the session could not be verified."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    default_message = "Authentication required."


class InvalidSession(Unauthenticated):
    """The session refers to an identity that no longer exists."""

    code = "invalid_session"
    default_message = "Invalid user session."


class Forbidden(ServiceError):
    """Authenticated, but the role or policy does not allow the action."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"
    default_message = "You do not have permission to perform this action."


class NotFound(ServiceError):
    """Missing resource, or an ownership mismatch masked as missing."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found."


class InvalidRequest(ServiceError):
    """Structural or business-rule violation; ``errors`` lists each field message."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid"
    default_message = "Validation failed."


class Conflict(ServiceError):
    """The request collides with existing state (duplicates, quorum rules)."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "The request conflicts with the current state."


class TransientFailure(ServiceError):
    """A transaction was aborted mid-flight; nothing was committed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transient_failure"
    default_message = "The request could not be completed. Please try again."


class InternalError(ServiceError):
    """Unexpected fault surfaced deliberately by the service layer."""


# ---------------------------------------------------------------------------
# DRF integration
# ---------------------------------------------------------------------------


def _envelope(status_code: int, errors: List[dict]) -> dict:
    return {
        "type": "server_error" if status_code >= 500 else "client_error",
        "errors": errors,
    }


def _flatten_drf_detail(detail: Any, attr: Optional[str] = None) -> List[dict]:
    if isinstance(detail, dict):
        flattened: List[dict] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            flattened.extend(_flatten_drf_detail(value, nested))
        return flattened
    if isinstance(detail, list):
        flattened = []
        for value in detail:
            flattened.extend(_flatten_drf_detail(value, attr))
        return flattened
    code = getattr(detail, "code", None) or "error"
    return [{"code": code, "detail": str(detail), "attr": attr}]


def _service_error_response(exc: ServiceError) -> Response:
    if exc.errors:
        errors = [
            {"code": exc.code, "detail": message, "attr": None}
            for message in exc.errors
        ]
    else:
        errors = [{"code": exc.code, "detail": exc.public_message, "attr": None}]
    response = Response(_envelope(exc.status_code, errors), status=exc.status_code)
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        response["WWW-Authenticate"] = 'Bearer realm="api"'
    return response


def service_exception_handler(exc: Exception, context: dict) -> Response:
    """``REST_FRAMEWORK["EXCEPTION_HANDLER"]`` entry point."""
    request = context.get("request")
    path = request.get_full_path() if request is not None else None

    if isinstance(exc, ServiceError):
        log = logger.bind(code=exc.code, status_code=exc.status_code, path=path)
        if exc.status_code >= 500:
            log.error("request.service_error", error=repr(exc))
            _record_fault(exc, request)
        else:
            log.info("request.rejected")
        return _service_error_response(exc)

    response = drf_exception_handler(exc, context)
    if response is not None:
        detail = getattr(exc, "detail", None)
        if isinstance(exc, drf_exceptions.APIException) and detail is not None:
            errors = _flatten_drf_detail(detail)
        else:
            errors = [{"code": "error", "detail": "Request failed.", "attr": None}]
        response.data = _envelope(response.status_code, errors)
        return response

    logger.error("request.unhandled_exception", path=path, error=repr(exc))
    _record_fault(exc, request)
    return Response(
        _envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            [
                {
                    "code": InternalError.code,
                    "detail": InternalError.default_message,
                    "attr": None,
                }
            ],
        ),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _record_fault(exc: Exception, request: Any) -> None:
    from modules.audit.sink import get_audit_sink

    user = getattr(request, "user", None)
    actor = getattr(user, "id", None) if user is not None else None
    get_audit_sink().error(
        "unhandled_request_error",
        actor=actor,
        subject=request.get_full_path() if request is not None else None,
        error=repr(exc),
        cause=repr(exc.__cause__) if exc.__cause__ else None,
        stack="".join(traceback.format_exception(exc)),
    )
