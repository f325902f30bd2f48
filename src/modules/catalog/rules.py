"""Validation rules for catalog writes.

Built on ``modules.core.validation``: every rule runs, and the cleaned
values are only returned when the whole payload is valid.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import URLValidator

from modules.core.money import round2, to_decimal
from modules.core.validation import FieldRule, validate

_SLUG = re.compile(r"[a-z0-9-]+")
_url_validator = URLValidator(schemes=["http", "https"])


def _is_url(value: Any) -> bool:
    try:
        _url_validator(value.strip())
    except DjangoValidationError:
        return False
    return True


def _is_whole_number(value: Any) -> bool:
    number = to_decimal(value)
    return number is not None and number == number.to_integral_value()


PRODUCT_RULES: Dict[str, FieldRule] = {
    "name": FieldRule(expected_type=str, min_length=1, max_length=200),
    "slug": FieldRule(
        expected_type=str,
        max_length=100,
        predicate=lambda v: _SLUG.fullmatch(v.strip()) is not None,
        message="slug must contain only lowercase letters, numbers, and hyphens",
    ),
    "price": FieldRule(expected_type=(int, float, str), min=0, max=999999),
    "category": FieldRule(expected_type=str, min_length=1, max_length=100),
    "brand": FieldRule(expected_type=str, min_length=1, max_length=100),
    "stock": FieldRule(
        expected_type=(int, str),
        min=0,
        max=999999,
        predicate=_is_whole_number,
        message="stock must be a whole number",
    ),
    "description": FieldRule(expected_type=str, min_length=1, max_length=2000),
    "image_url": FieldRule(
        expected_type=str,
        predicate=_is_url,
        message="image_url must be a valid URL",
    ),
    "is_featured": FieldRule(expected_type=bool),
    "is_critical": FieldRule(expected_type=bool),
}

CREATE_REQUIRED = ("name", "slug", "price", "category")

RATING_RULES: Dict[str, FieldRule] = {
    "rating": FieldRule(required=True, expected_type=int, min=1, max=5),
    "review": FieldRule(expected_type=str),
}


def clean_product_payload(
    data: Any, *, creating: bool = False
) -> Tuple[Dict[str, Any], List[str]]:
    """Return ``(changes, errors)`` for the fields present in ``data``.

    Unknown keys are ignored.  On create the ``CREATE_REQUIRED`` fields must
    be present.
    """
    rules = dict(PRODUCT_RULES)
    if creating:
        for name in CREATE_REQUIRED:
            rules[name] = replace(rules[name], required=True)
    result = validate(data, rules)
    if not result.valid:
        return {}, result.errors

    source: Mapping[str, Any] = data
    changes: Dict[str, Any] = {}
    for name in rules:
        if name not in source or source[name] is None:
            continue
        value = source[name]
        if name == "price":
            changes[name] = round2(to_decimal(value))
        elif name == "stock":
            changes[name] = int(to_decimal(value))
        elif name == "slug":
            changes[name] = value.strip().lower()
        elif isinstance(value, str):
            changes[name] = value.strip()
        else:
            changes[name] = value
    return changes, []
