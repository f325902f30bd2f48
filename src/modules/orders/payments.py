"""Payment settlement worker.

Business rules enforced here:
- Only the owner pays an order; admins get no override on this route.
- The order row is locked for the whole settlement.
- Distinct rejections for an order that is already paid, cancelled, or
  unpaid for longer than ``ORDER_UNPAID_EXPIRY_HOURS`` (re-order instead).
- Confirmation fields are validated together.  A reported amount must
  match the order total within ``PAYMENT_AMOUNT_TOLERANCE``; the stored
  amount always comes from the order.
- A payment id can settle one order only.  A second order presenting it
  is a replay: ``DuplicatePayment`` (409) plus a security audit event.
  The database unique constraint catches concurrent replays the same way.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

import structlog
from django.conf import settings
from django.utils import timezone

from modules.core.exceptions import InvalidRequest
from modules.orders.constants import OrderStatus
from modules.orders.dtos import PaymentConfirmationDTO, PaymentReceiptDTO
from modules.orders.exceptions import (
    DuplicatePayment,
    OrderAlreadyPaid,
    OrderCancelled,
    OrderExpired,
    OrderNotFound,
    PaymentAmountMismatch,
)
from modules.orders.rules import validate_payment_confirmation

if TYPE_CHECKING:
    from modules.accounts.models import Identity
    from modules.audit.sink import IAuditSink
    from modules.core.unit_of_work import IUnitOfWork
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class PaymentSettlementWorker:
    def __init__(
        self,
        order_repository: IOrderRepository,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
        tolerance: Optional[Decimal] = None,
        expiry: Optional[timedelta] = None,
        currency: Optional[str] = None,
    ) -> None:
        self._orders = order_repository
        self._uow = unit_of_work
        self._audit = audit_sink
        self.tolerance = (
            tolerance
            if tolerance is not None
            else Decimal(str(settings.PAYMENT_AMOUNT_TOLERANCE))
        )
        self.expiry = expiry or timedelta(hours=settings.ORDER_UNPAID_EXPIRY_HOURS)
        self.currency = currency or settings.STORE_CURRENCY

    def _check_state(self, order: Order) -> None:
        if order.is_paid:
            raise OrderAlreadyPaid()
        if order.status == OrderStatus.CANCELLED:
            raise OrderCancelled()
        if timezone.now() - order.created_at > self.expiry:
            raise OrderExpired()

    def _parse(self, order: Order, data: Any) -> PaymentConfirmationDTO:
        result = validate_payment_confirmation(data)
        if not result.valid:
            raise InvalidRequest(errors=result.errors)
        confirmation = PaymentConfirmationDTO(
            id=data["id"],
            status=data["status"],
            email_address=data["email_address"],
            amount=data.get("amount"),
        )
        if confirmation.amount is not None and (
            abs(confirmation.amount - order.total_price) > self.tolerance
        ):
            raise PaymentAmountMismatch(
                f"Payment amount {confirmation.amount} does not match "
                f"order total {order.total_price}."
            )
        return confirmation

    def settle(self, identity: Identity, order_id: Any, data: Any) -> PaymentReceiptDTO:
        """Record a provider confirmation against ``order_id``.

        Raises:
            OrderNotFound: missing order or not owned by ``identity``.
            InvalidOrderState subclasses: paid, cancelled or expired order.
            InvalidRequest / PaymentAmountMismatch: bad confirmation.
            DuplicatePayment: the payment id already settled another order.
        """
        log = logger.bind(order_id=str(order_id), identity_id=str(identity.id))

        def work() -> Order:
            order = self._orders.get_for_update(order_id)
            if order is None or order.owner_id != identity.pk:
                raise OrderNotFound()
            self._check_state(order)
            confirmation = self._parse(order, data)

            existing = self._orders.find_by_payment_id(confirmation.id)
            if existing is not None and existing.pk != order.pk:
                raise DuplicatePayment()

            order.is_paid = True
            order.paid_at = timezone.now()
            order.status = OrderStatus.PAID
            order.payment_id = confirmation.id
            order.payment_status = confirmation.status
            order.payer_email = confirmation.email_address
            order.payment_amount = order.total_price
            order.payment_currency = self.currency
            return self._orders.record_payment(order)

        try:
            order = self._uow.with_transaction(work)
        except DuplicatePayment:
            log.warning("payment.duplicate")
            self._audit.security_violation(
                "duplicate_payment_attempt",
                actor=identity.id,
                subject=order_id,
                payment_id=_payment_id_of(data),
            )
            raise
        except PaymentAmountMismatch as exc:
            log.warning("payment.amount_mismatch")
            self._audit.security_violation(
                "payment_amount_mismatch",
                actor=identity.id,
                subject=order_id,
                reported_amount=data.get("amount"),
                detail=exc.public_message,
            )
            raise

        log.info("payment.processed", payment_id=order.payment_id)
        self._audit.user_action(
            "payment_processed",
            actor=identity.id,
            subject=order.id,
            payment_id=order.payment_id,
            amount=order.payment_amount,
            currency=order.payment_currency,
        )
        return PaymentReceiptDTO(
            order_id=order.id, total_paid=order.total_price, payment_id=order.payment_id
        )


def _payment_id_of(data: Any) -> Optional[str]:
    value = data.get("id") if hasattr(data, "get") else None
    return value if isinstance(value, str) else None
