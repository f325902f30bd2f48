"""Order domain exceptions.

Every class maps onto the shared taxonomy in ``modules.core.exceptions``;
the ``code`` distinguishes rejections that share a status.
"""

from __future__ import annotations

from modules.core.exceptions import Conflict, InvalidRequest, NotFound


class OrderNotFound(NotFound):
    default_message = "Order not found."


class ProductUnavailable(NotFound):
    """A checkout line references a missing or deleted product."""

    code = "product_not_found"
    default_message = "Product not found."


class InsufficientStock(InvalidRequest):
    code = "insufficient_stock"
    default_message = "Insufficient stock."


class InvalidOrderState(InvalidRequest):
    code = "invalid_state"


class OrderAlreadyPaid(InvalidOrderState):
    code = "already_paid"
    default_message = "Order is already paid."


class OrderCancelled(InvalidOrderState):
    code = "cancelled"
    default_message = "Order has been cancelled."


class OrderExpired(InvalidOrderState):
    code = "expired"
    default_message = "Order has expired. Please place a new order."


class PaymentAmountMismatch(InvalidRequest):
    code = "amount_mismatch"
    default_message = "Payment amount does not match the order total."


class DuplicatePayment(Conflict):
    code = "duplicate_payment"
    default_message = "This payment has already been processed."
