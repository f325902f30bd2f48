"""Order transaction processor (checkout and cancellation).

Business rules enforced here:
- Requests are validated in full before anything is read; every violation
  is reported at once.
- Prices come from the catalog, never from the request.  Totals are
  computed by ``PricingPolicy``.
- Checkout is one unit of work: insert the pending order and its items,
  then decrement stock for each line.  The decrement is conditional on
  enough stock, an unchanged price and a live product, so two concurrent
  checkouts can never oversell.  Any failed line aborts the whole order.
- Lines are processed in product-id order so concurrent checkouts take
  row locks in the same order.
- Only the owner cancels, and only while the order is pending; the
  reserved stock is returned in the same unit of work.
- Audit events are written after commit.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional, Tuple
from uuid import UUID

import structlog
from django.utils import timezone

from modules.core.exceptions import InvalidRequest, TransientFailure
from modules.orders.constants import OrderStatus
from modules.orders.dtos import (
    CheckoutLineDTO,
    CheckoutRequestDTO,
    PlacedOrderDTO,
    ShippingAddressDTO,
)
from modules.orders.exceptions import (
    InsufficientStock,
    InvalidOrderState,
    OrderNotFound,
    ProductUnavailable,
)
from modules.orders.models import Order, OrderItem
from modules.orders.pricing import PriceQuote, PricingPolicy
from modules.orders.rules import validate_checkout

if TYPE_CHECKING:
    from modules.accounts.models import Identity
    from modules.audit.sink import IAuditSink
    from modules.catalog.models import Product
    from modules.catalog.repositories.interfaces import IProductRepository
    from modules.core.unit_of_work import IUnitOfWork
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

Line = Tuple["Product", CheckoutLineDTO]


class OrderTransactionProcessor:
    """Application service for checkout.

    Receives its repositories, unit of work and audit sink via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
        pricing: Optional[PricingPolicy] = None,
    ) -> None:
        self._orders = order_repository
        self._products = product_repository
        self._uow = unit_of_work
        self._audit = audit_sink
        self._pricing = pricing or PricingPolicy.from_settings()

    # ------------------------------------------------------------------
    # Request parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_request(data: Any) -> CheckoutRequestDTO:
        """Validate a raw checkout payload and build the typed request.

        Raises:
            InvalidRequest: with every violation found.
        """
        result = validate_checkout(data)
        if not result.valid:
            raise InvalidRequest(errors=result.errors)

        address = data["shipping_address"]
        return CheckoutRequestDTO(
            items=tuple(
                CheckoutLineDTO(product_id=UUID(item["product_id"]), quantity=item["quantity"])
                for item in data["items"]
            ),
            shipping_address=ShippingAddressDTO(
                **{name: address[name] for name in ShippingAddressDTO.model_fields}
            ),
            payment_method=data["payment_method"],
        )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def _price_lines(self, request: CheckoutRequestDTO) -> Tuple[List[Line], Decimal]:
        lines: List[Line] = []
        items_price = Decimal("0")
        for line in request.items:
            product = self._products.get_available(line.product_id)
            if product is None:
                raise ProductUnavailable(f"Product {line.product_id.hex} not found.")
            if product.stock < line.quantity:
                raise InsufficientStock(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {product.stock}, requested: {line.quantity}."
                )
            items_price += product.price * line.quantity
            lines.append((product, line))
        lines.sort(key=lambda pair: pair[1].product_id)
        return lines, items_price

    def _reserve(self, product: Product, quantity: int) -> None:
        if self._products.reserve_stock(product.pk, quantity, product.price):
            return
        current = self._products.get_available(product.pk)
        if current is not None and current.stock < quantity:
            raise InsufficientStock(
                f"Insufficient stock for {current.name}. "
                f"Available: {current.stock}, requested: {quantity}."
            )
        logger.warning("order.reservation_conflict", product_id=str(product.pk))
        raise TransientFailure()

    def place_order(self, identity: Identity, data: Any) -> PlacedOrderDTO:
        """Create a pending order for ``identity``.

        Raises:
            InvalidRequest: malformed request.
            ProductUnavailable: a product is missing or deleted.
            InsufficientStock: a product cannot cover its line.
            TransientFailure: a product changed concurrently; nothing was written.
        """
        request = self.parse_request(data)
        lines, items_price = self._price_lines(request)
        quote: PriceQuote = self._pricing.quote(items_price)
        address = request.shipping_address

        def work() -> Order:
            order = Order(
                owner=identity,
                status=OrderStatus.PENDING,
                shipping_full_name=address.full_name,
                shipping_address=address.address,
                shipping_city=address.city,
                shipping_postal_code=address.postal_code,
                shipping_country=address.country,
                payment_method=request.payment_method,
                items_price=quote.items_price,
                tax_price=quote.tax_price,
                shipping_price=quote.shipping_price,
                total_price=quote.total_price,
            )
            items = [
                OrderItem(
                    product=product,
                    name=product.name,
                    quantity=line.quantity,
                    unit_price=product.price,
                )
                for product, line in lines
            ]
            order = self._orders.create(order, items)
            for product, line in lines:
                self._reserve(product, line.quantity)
            return order

        order = self._uow.with_transaction(work)

        log = logger.bind(order_id=str(order.id), identity_id=str(identity.id))
        log.info("order.created", total_price=str(order.total_price), item_count=len(lines))
        self._audit.user_action(
            "order_created",
            actor=identity.id,
            subject=order.id,
            total_price=order.total_price,
            item_count=len(lines),
            payment_method=order.payment_method,
        )
        return PlacedOrderDTO(order_id=order.id, total_price=order.total_price)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_order(self, identity: Identity, order_id: Any) -> Order:
        """Cancel a pending order owned by ``identity`` and release its stock.

        Raises:
            OrderNotFound: missing order or not owned by ``identity``.
            InvalidOrderState: the order is no longer pending.
        """

        def work() -> Order:
            order = self._orders.get_for_update(order_id)
            if order is None or order.owner_id != identity.pk:
                raise OrderNotFound()
            if order.status != OrderStatus.PENDING:
                raise InvalidOrderState(
                    f"Only pending orders can be cancelled (current status: {order.status})."
                )
            for item in sorted(self._orders.items_of(order), key=lambda i: i.product_id):
                self._products.release_stock(item.product_id, item.quantity)
            order.status = OrderStatus.CANCELLED
            order.cancelled_at = timezone.now()
            return self._orders.save(order)

        order = self._uow.with_transaction(work)
        logger.bind(order_id=str(order.id)).info("order.cancelled")
        self._audit.user_action("order_cancelled", actor=identity.id, subject=order.id)
        return order
