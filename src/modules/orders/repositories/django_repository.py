"""Django ORM implementation of the Order repository.

Multi-row writes are expected to run inside the caller's unit of work;
the only transaction opened here is the savepoint around the payment
write, so a unique-constraint clash can be reported without poisoning the
outer transaction.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from modules.orders.exceptions import DuplicatePayment
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

PAYMENT_FIELDS = [
    "status",
    "is_paid",
    "paid_at",
    "payment_id",
    "payment_status",
    "payer_email",
    "payment_amount",
    "payment_currency",
]


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, order: Order, items: Sequence[OrderItem]) -> Order:
        order.save()
        for item in items:
            item.order = order
            item.save()
        logger.bind(order_id=str(order.id), item_count=len(items)).info("order.inserted")
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: Any) -> Optional[Order]:
        """Retrieve an order with eager-loaded owner and items.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_related("owner", "delivered_by")
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: Any) -> Optional[Order]:
        """Must run inside a transaction."""
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .select_related("owner")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = Order.objects.select_related("owner").prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def items_of(self, order: Order) -> List[OrderItem]:
        return list(order.items.all())

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        entity.save()
        logger.info("order.saved", order_id=str(entity.id), status=entity.status)
        return entity

    def record_payment(self, order: Order) -> Order:
        try:
            with transaction.atomic():
                order.save(update_fields=PAYMENT_FIELDS)
        except IntegrityError as exc:
            raise DuplicatePayment() from exc
        return order

    # ------------------------------------------------------------------
    # Order-specific queries
    # ------------------------------------------------------------------

    def find_by_payment_id(self, payment_id: str) -> Optional[Order]:
        return Order.objects.filter(payment_id=payment_id).first()

    def has_active_orders(self, owner_id: Any) -> bool:
        return Order.objects.filter(
            owner_id=owner_id, is_paid=True, is_delivered=False
        ).exists()

    def count_active_orders_for_product(self, product_id: Any) -> int:
        return (
            Order.objects.filter(items__product_id=product_id, is_paid=True, is_delivered=False)
            .distinct()
            .count()
        )

    def has_paid_order_with_product(self, owner_id: Any, product_id: Any) -> bool:
        return Order.objects.filter(
            owner_id=owner_id, items__product_id=product_id, is_paid=True
        ).exists()
