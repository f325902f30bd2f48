"""Order and OrderItem models.

Business rules implemented:
- Orders are never deleted; they move pending -> paid -> delivered, or
  pending -> cancelled.  ``is_paid`` / ``is_delivered`` mirror the status.
- Every price field is server-computed from the item snapshot.
- OrderItem snapshots the product name and server price at checkout
  (``unit_price``); ``subtotal`` is always ``quantity * unit_price``.
- ``payment_id`` is unique across all orders.  NULLs do not collide, so
  unpaid orders never conflict.
- Order number auto-generated as human-readable identifier.
- Owner and product FKs use PROTECT to preserve financial history.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    SHIPPING_ADDRESS_FIELDS,
    OrderStatus,
    PaymentMethod,
)

_MONEY = {"max_digits": 12, "decimal_places": 2, "default": Decimal("0.00")}


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    shipping_full_name = models.CharField(max_length=100)
    shipping_address = models.CharField(max_length=200)
    shipping_city = models.CharField(max_length=50)
    shipping_postal_code = models.CharField(max_length=20)
    shipping_country = models.CharField(max_length=50)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    is_expedited = models.BooleanField(default=False)

    items_price = models.DecimalField(**_MONEY)
    tax_price = models.DecimalField(**_MONEY)
    shipping_price = models.DecimalField(**_MONEY)
    total_price = models.DecimalField(**_MONEY)

    is_paid = models.BooleanField(default=False)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    payment_status = models.CharField(max_length=20, blank=True, default="")
    payer_email = models.EmailField(blank=True, default="")
    payment_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_currency = models.CharField(max_length=3, blank=True, default="")

    is_delivered = models.BooleanField(default=False)
    delivered_at = models.DateTimeField(null=True, blank=True)
    delivered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    delivery_notes = models.CharField(max_length=500, blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["owner", "status"], name="orders_owner_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_price__gte=0),
                name="orders_total_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def shipping(self) -> dict[str, str]:
        return {field: getattr(self, f"shipping_{field}") for field in SHIPPING_ADDRESS_FIELDS}

    @property
    def payment_result(self) -> dict[str, Any] | None:
        if not self.payment_id:
            return None
        return {
            "id": self.payment_id,
            "status": self.payment_status,
            "email_address": self.payer_email,
            "amount": self.payment_amount,
            "currency": self.payment_currency,
            "recorded_at": self.paid_at,
        }

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Immutable line item.

    ``name`` and ``unit_price`` are snapshots of the product at checkout;
    they never change when the catalog does.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.UniqueConstraint(
                fields=["order", "product"],
                name="order_items_one_line_per_product",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} x{self.quantity} (${self.subtotal})"
