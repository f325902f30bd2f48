"""Request validation rules for checkout and payment confirmation.

Built on ``modules.core.validation``; nested structures (line items and
the shipping address) are validated element by element and all messages
are merged into one result.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping

from modules.accounts.access import is_well_formed_id
from modules.core.validation import FieldRule, ValidationResult, validate, validate_each
from modules.orders.constants import (
    ACCEPTED_PAYMENT_STATUSES,
    MAX_ITEM_QUANTITY,
    MAX_ORDER_ITEMS,
    PAYMENT_ID_MAX_LENGTH,
    PAYMENT_ID_MIN_LENGTH,
    SHIPPING_ADDRESS_FIELDS,
    PaymentMethod,
)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

CHECKOUT_RULES: Dict[str, FieldRule] = {
    "items": FieldRule(
        required=True, expected_type=list, min_length=1, max_length=MAX_ORDER_ITEMS
    ),
    "shipping_address": FieldRule(required=True, expected_type=dict),
    "payment_method": FieldRule(
        required=True,
        expected_type=str,
        predicate=lambda v: v in PaymentMethod.values,
        message="payment_method must be one of " + ", ".join(PaymentMethod.values),
    ),
}

ITEM_RULES: Dict[str, FieldRule] = {
    "product_id": FieldRule(
        required=True,
        expected_type=str,
        predicate=is_well_formed_id,
        message="product_id must be a 32-character hexadecimal id",
    ),
    "quantity": FieldRule(required=True, expected_type=int, min=1, max=MAX_ITEM_QUANTITY),
}

ADDRESS_RULES: Dict[str, FieldRule] = {
    name: FieldRule(required=True, expected_type=str, min_length=1, max_length=limit)
    for name, limit in SHIPPING_ADDRESS_FIELDS.items()
}

PAYMENT_RULES: Dict[str, FieldRule] = {
    "id": FieldRule(
        required=True,
        expected_type=str,
        min_length=PAYMENT_ID_MIN_LENGTH,
        max_length=PAYMENT_ID_MAX_LENGTH,
    ),
    "status": FieldRule(
        required=True,
        expected_type=str,
        predicate=lambda v: v.upper() in ACCEPTED_PAYMENT_STATUSES,
        message="status must be one of " + ", ".join(sorted(ACCEPTED_PAYMENT_STATUSES)),
    ),
    "email_address": FieldRule(
        required=True,
        expected_type=str,
        max_length=254,
        predicate=lambda v: EMAIL_PATTERN.fullmatch(v.strip()) is not None,
        message="email_address must be a valid email address",
    ),
    "amount": FieldRule(expected_type=(int, float, str), min=0),
}


def validate_checkout(data: Any) -> ValidationResult:
    result = validate(data, CHECKOUT_RULES)
    errors: List[str] = list(result.errors)
    if not isinstance(data, Mapping):
        return result

    items = data.get("items")
    if isinstance(items, list):
        errors.extend(validate_each(items, ITEM_RULES, "items").errors)
        seen = set()
        for index, item in enumerate(items):
            product_id = item.get("product_id") if isinstance(item, Mapping) else None
            if not isinstance(product_id, str):
                continue
            key = product_id.lower()
            if key in seen:
                errors.append(f"items[{index}].product_id is duplicated")
            seen.add(key)

    address = data.get("shipping_address")
    if isinstance(address, Mapping):
        nested = validate(address, ADDRESS_RULES)
        errors.extend(f"shipping_address.{message}" for message in nested.errors)

    return ValidationResult(valid=not errors, errors=errors)


def validate_payment_confirmation(data: Any) -> ValidationResult:
    return validate(data, PAYMENT_RULES)
