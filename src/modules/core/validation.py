"""Parameter validation rule engine.

``validate(data, rules)`` checks an untrusted mapping against a rule set and
returns every violation at once. It never stops at the first failing field,
so clients get the complete error list in one round trip.  The module is
pure: no I/O, no Django, no global state.

Example::

    rules = {
        "name": FieldRule(required=True, expected_type=str, max_length=100),
        "quantity": FieldRule(required=True, expected_type=int, min=1, max=100),
    }
    result = validate({"name": "", "quantity": 0}, rules)
    # result.valid is False, result.errors lists both fields
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from numbers import Number
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Type, Union

TypeSpec = Union[Type[Any], Tuple[Type[Any], ...]]

_TYPE_NAMES = {
    str: "string",
    int: "integer",
    float: "number",
    Decimal: "number",
    bool: "boolean",
    list: "list",
    dict: "object",
}


def _type_name(expected: TypeSpec) -> str:
    types = expected if isinstance(expected, tuple) else (expected,)
    names = []
    for candidate in types:
        name = _TYPE_NAMES.get(candidate, candidate.__name__)
        if name not in names:
            names.append(name)
    return " or ".join(names)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _matches_type(value: Any, expected: TypeSpec) -> bool:
    types = expected if isinstance(expected, tuple) else (expected,)
    # bool is an int subclass; only accept it when explicitly requested.
    if isinstance(value, bool) and bool not in types:
        return False
    return isinstance(value, types)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (Number, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            return None
        if number.is_finite():
            return number
    return None


@dataclass(frozen=True)
class FieldRule:
    """Constraints for a single input field.  Unset constraints are skipped."""

    required: bool = False
    expected_type: Optional[TypeSpec] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[Union[int, Decimal]] = None
    max: Optional[Union[int, Decimal]] = None
    predicate: Optional[Callable[[Any], bool]] = None
    message: Optional[str] = None

    def check(self, name: str, value: Any) -> List[str]:
        if _is_missing(value):
            return [f"{name} is required"] if self.required else []

        if self.expected_type is not None and not _matches_type(
            value, self.expected_type
        ):
            # Length and range checks are meaningless for a value of the wrong type.
            return [f"{name} must be of type {_type_name(self.expected_type)}"]

        errors: List[str] = []
        if self.min_length is not None or self.max_length is not None:
            length = len(value.strip()) if isinstance(value, str) else _safe_len(value)
            if length is None:
                errors.append(f"{name} must have a length")
            else:
                if self.min_length is not None and length < self.min_length:
                    errors.append(
                        f"{name} must be at least {self.min_length} characters"
                        if isinstance(value, str)
                        else f"{name} must contain at least {self.min_length} items"
                    )
                if self.max_length is not None and length > self.max_length:
                    errors.append(
                        f"{name} must be at most {self.max_length} characters"
                        if isinstance(value, str)
                        else f"{name} must contain at most {self.max_length} items"
                    )

        if self.min is not None or self.max is not None:
            number = _as_decimal(value)
            if number is None:
                errors.append(f"{name} must be a number")
            else:
                if self.min is not None and number < Decimal(str(self.min)):
                    errors.append(f"{name} must be at least {self.min}")
                if self.max is not None and number > Decimal(str(self.max)):
                    errors.append(f"{name} must be at most {self.max}")

        if self.predicate is not None:
            try:
                accepted = bool(self.predicate(value))
            except (TypeError, ValueError):
                accepted = False
            if not accepted:
                errors.append(self.message or f"{name} is invalid")

        return errors


def _safe_len(value: Any) -> Optional[int]:
    try:
        return len(value)
    except TypeError:
        return None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate(data: Any, rules: Mapping[str, FieldRule]) -> ValidationResult:
    """Evaluate every rule for every field and collect all violations."""
    source: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
    errors: List[str] = []
    if not isinstance(data, Mapping):
        errors.append("request body must be an object")
    for name, rule in rules.items():
        errors.extend(rule.check(name, source.get(name)))
    return ValidationResult(valid=not errors, errors=errors)


def validate_each(
    items: Sequence[Any], rules: Mapping[str, FieldRule], prefix: str
) -> ValidationResult:
    """Apply ``rules`` to each element, prefixing messages with its position."""
    errors: List[str] = []
    for index, item in enumerate(items):
        result = validate(item, rules)
        errors.extend(f"{prefix}[{index}].{message}" for message in result.errors)
    return ValidationResult(valid=not errors, errors=errors)
