"""Fulfillment worker: marks paid orders as delivered.

Business rules enforced here:
- Caller is an admin (checked by the gate; the route also requires an
  anti-forgery token).
- The order must be paid, not yet delivered, not cancelled, and carry a
  complete shipping address.
- Only an admin can flag an order expedited (``expedite``); checkout never
  sets the flag.
- Delivery cannot predate the order.  Delivering a non-expedited order
  within 24 hours of checkout is allowed but recorded as a security event.
- Notes are trimmed and capped at 500 characters.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from django.utils import timezone

from modules.core.exceptions import InvalidRequest
from modules.orders.constants import (
    DELIVERY_NOTES_MAX_LENGTH,
    SHIPPING_ADDRESS_FIELDS,
    SUSPICIOUS_DELIVERY_HOURS,
    OrderStatus,
)
from modules.orders.dtos import DeliveryReceiptDTO
from modules.orders.exceptions import InvalidOrderState, OrderNotFound

if TYPE_CHECKING:
    from modules.accounts.models import Identity
    from modules.audit.sink import IAuditSink
    from modules.core.unit_of_work import IUnitOfWork
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


def clean_notes(data: Any) -> str:
    notes = data.get("notes") if hasattr(data, "get") else None
    if not isinstance(notes, str):
        return ""
    return notes.strip()[:DELIVERY_NOTES_MAX_LENGTH]


class FulfillmentWorker:
    def __init__(
        self,
        order_repository: IOrderRepository,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
    ) -> None:
        self._orders = order_repository
        self._uow = unit_of_work
        self._audit = audit_sink

    @staticmethod
    def _check_preconditions(order: Order) -> None:
        if not order.is_paid:
            raise InvalidOrderState(
                "Cannot deliver unpaid order. Payment must be confirmed first.",
                code="unpaid",
            )
        if order.is_delivered:
            raise InvalidOrderState("Order is already marked as delivered.", code="already_delivered")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidOrderState("Cannot deliver cancelled order.", code="cancelled")
        missing = [name for name, value in order.shipping.items() if not (value or "").strip()]
        if missing:
            raise InvalidRequest(
                errors=[f"Incomplete shipping address: {name} is missing" for name in missing],
                code="incomplete_address",
            )

    def deliver(self, admin: Identity, order_id: Any, data: Any) -> DeliveryReceiptDTO:
        """Mark ``order_id`` delivered by ``admin``.

        Raises:
            OrderNotFound: missing order.
            InvalidOrderState / InvalidRequest: a precondition failed.
        """
        notes = clean_notes(data)

        def work():
            order = self._orders.get_for_update(order_id)
            if order is None:
                raise OrderNotFound()
            self._check_preconditions(order)

            delivered_at = timezone.now()
            age = delivered_at - order.created_at
            if age < timedelta(0):
                raise InvalidRequest(
                    "Cannot set delivery date before order date.", code="invalid_delivery_time"
                )

            order.is_delivered = True
            order.delivered_at = delivered_at
            order.delivered_by = admin
            order.delivery_notes = notes
            order.status = OrderStatus.DELIVERED
            return self._orders.save(order), age

        order, age = self._uow.with_transaction(work)
        age_seconds = int(age.total_seconds())

        if age < timedelta(hours=SUSPICIOUS_DELIVERY_HOURS) and not order.is_expedited:
            self._audit.security_violation(
                "suspicious_fast_delivery",
                actor=admin.id,
                subject=order.id,
                age_seconds=age_seconds,
                ordered_at=order.created_at,
                delivered_at=order.delivered_at,
            )
        self._audit.admin_action(
            "order_delivered",
            actor=admin.id,
            subject=order.id,
            owner=order.owner_id,
            age_seconds=age_seconds,
        )
        logger.bind(order_id=str(order.id), admin_id=str(admin.id)).info("order.delivered")
        return DeliveryReceiptDTO(order_id=order.id, delivered_at=order.delivered_at)

    def expedite(self, admin: Identity, order_id: Any) -> Order:
        """Flag an undelivered order for expedited shipping.

        Expedited orders are exempt from the fast-delivery security event.

        Raises:
            OrderNotFound: missing order.
            InvalidOrderState: the order is cancelled or already delivered.
        """

        def work() -> Order:
            order = self._orders.get_for_update(order_id)
            if order is None:
                raise OrderNotFound()
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOrderState("Cannot expedite cancelled order.", code="cancelled")
            if order.is_delivered:
                raise InvalidOrderState(
                    "Order is already marked as delivered.", code="already_delivered"
                )
            if not order.is_expedited:
                order.is_expedited = True
                self._orders.save(order)
            return order

        order = self._uow.with_transaction(work)
        self._audit.admin_action(
            "order_expedited", actor=admin.id, subject=order.id, owner=order.owner_id
        )
        logger.bind(order_id=str(order.id), admin_id=str(admin.id)).info("order.expedited")
        return order
