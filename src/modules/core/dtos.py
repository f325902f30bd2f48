"""Helpers shared by the API layer when building Pydantic DTOs."""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from modules.core.exceptions import InvalidRequest

D = TypeVar("D", bound=BaseModel)


def parse_dto(dto_class: Type[D], data: Any) -> D:
    """Build ``dto_class`` from request data or raise ``InvalidRequest``.

    Every Pydantic error becomes one ``"<field>: <message>"`` entry.
    """
    if not isinstance(data, Mapping):
        raise InvalidRequest(errors=["request body must be an object"])
    try:
        return dto_class.model_validate(dict(data))
    except PydanticValidationError as exc:
        messages = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "body"
            messages.append(f"{field}: {error['msg']}")
        raise InvalidRequest(errors=messages) from exc
