"""Order DTOs for the Service Layer.

Immutable Pydantic v2 models built from requests that already passed
``modules.orders.rules``; they carry trimmed, typed values into the
workers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.orders.constants import PaymentMethod


class CheckoutLineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = Field(ge=1)


class ShippingAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    full_name: str
    address: str
    city: str
    postal_code: str
    country: str


class CheckoutRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: Tuple[CheckoutLineDTO, ...]
    shipping_address: ShippingAddressDTO
    payment_method: PaymentMethod


class PaymentConfirmationDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    status: str
    email_address: str
    amount: Optional[Decimal] = None

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        return v.upper()

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        if v is None or v == "":
            return None
        return Decimal(str(v).strip())


class PlacedOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    total_price: Decimal


class PaymentReceiptDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    total_paid: Decimal
    payment_id: str


class DeliveryReceiptDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    delivered_at: datetime
