"""Unit tests for OrderTransactionProcessor against in-memory fakes.

Covers:
- Server-side pricing (the 100 x 2 example totals 230.00).
- Stock reservation and all-or-nothing rollback.
- Validation errors reported together, before any read.
- Concurrent checkouts never oversell.
- Cancellation releases stock.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
import uuid6
from django.utils import timezone

from modules.accounts.models import Role
from modules.core.exceptions import InvalidRequest, TransientFailure
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import (
    InsufficientStock,
    InvalidOrderState,
    OrderNotFound,
    ProductUnavailable,
)
from modules.orders.pricing import PricingPolicy
from modules.orders.services import OrderTransactionProcessor
from tests.factories import checkout_payload
from tests.fakes import (
    FakeUnitOfWork,
    InMemoryIdentityStore,
    InMemoryOrderRepository,
    InMemoryProductRepository,
    RecordingAuditSink,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def identities():
    return InMemoryIdentityStore()


@pytest.fixture()
def products():
    return InMemoryProductRepository()


@pytest.fixture()
def orders():
    return InMemoryOrderRepository()


@pytest.fixture()
def audit():
    return RecordingAuditSink()


@pytest.fixture()
def uow(products, orders):
    return FakeUnitOfWork(products, orders)


@pytest.fixture()
def processor(orders, products, uow, audit):
    return OrderTransactionProcessor(orders, products, uow, audit, pricing=PricingPolicy())


@pytest.fixture()
def customer(identities):
    return identities.add("Ada", "ada@example.com")


@pytest.fixture()
def jacket(products):
    return products.add("Trail Jacket", "100.00", 10)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class TestPlaceOrder:
    def test_totals_are_computed_server_side(self, processor, customer, jacket, orders):
        placed = processor.place_order(customer, checkout_payload((jacket, 2)))

        assert placed.total_price == Decimal("230.00")
        order = orders.get_by_id(placed.order_id)
        assert order.status == OrderStatus.PENDING
        assert order.items_price == Decimal("200.00")
        assert order.tax_price == Decimal("30.00")
        assert order.shipping_price == Decimal("0.00")
        assert order.owner_id == customer.pk

    def test_client_supplied_prices_are_ignored(self, processor, customer, jacket):
        payload = checkout_payload((jacket, 2), total_price="1.00")
        payload["items"][0]["price"] = "0.01"
        placed = processor.place_order(customer, payload)
        assert placed.total_price == Decimal("230.00")

    def test_items_snapshot_name_and_price(self, processor, customer, jacket, orders):
        placed = processor.place_order(customer, checkout_payload((jacket, 2)))
        (item,) = orders.items_of(orders.get_by_id(placed.order_id))
        assert item.name == "Trail Jacket"
        assert item.unit_price == Decimal("100.00")
        assert item.subtotal == Decimal("200.00")

    def test_stock_is_reserved(self, processor, customer, jacket, products):
        processor.place_order(customer, checkout_payload((jacket, 3)))
        assert products.stock_of(jacket) == 7

    def test_audits_after_commit(self, processor, customer, jacket, audit):
        placed = processor.place_order(customer, checkout_payload((jacket, 1)))
        (record,) = audit.find("order_created")
        assert record.actor == customer.id.hex
        assert record.subject == placed.order_id.hex
        assert record.context["total_price"] == "140.00"

    def test_unknown_product(self, processor, customer, orders):
        payload = checkout_payload()
        payload["items"] = [{"product_id": uuid6.uuid7().hex, "quantity": 1}]
        with pytest.raises(ProductUnavailable):
            processor.place_order(customer, payload)
        assert orders.list() == []

    def test_deleted_product(self, processor, customer, jacket):
        jacket.deleted_at = timezone.now()
        with pytest.raises(ProductUnavailable):
            processor.place_order(customer, checkout_payload((jacket, 1)))

    def test_insufficient_stock(self, processor, customer, jacket, products, orders):
        with pytest.raises(InsufficientStock) as exc_info:
            processor.place_order(customer, checkout_payload((jacket, 11)))
        assert "Available: 10, requested: 11" in exc_info.value.public_message
        assert products.stock_of(jacket) == 10
        assert orders.list() == []

    def test_validation_errors_are_reported_together(self, processor, customer, audit):
        with pytest.raises(InvalidRequest) as exc_info:
            processor.place_order(
                customer,
                {"items": [{"product_id": "xyz", "quantity": 0}], "payment_method": "Gold"},
            )
        errors = exc_info.value.errors
        assert "shipping_address is required" in errors
        assert "items[0].quantity must be at least 1" in errors
        assert len(errors) >= 4
        assert audit.records == []

    def test_failed_line_rolls_back_the_whole_order(
        self, orders, products, audit, customer, monkeypatch
    ):
        first = products.add("Alpha", "10.00", 5)
        second = products.add("Beta", "10.00", 5)
        uow = FakeUnitOfWork(products, orders)
        processor = OrderTransactionProcessor(orders, products, uow, audit, PricingPolicy())

        reserve = products.reserve_stock

        def reserve_or_fail(id, quantity, expected_price):
            if id == second.pk:
                return False
            return reserve(id, quantity, expected_price)

        monkeypatch.setattr(products, "reserve_stock", reserve_or_fail)

        with pytest.raises(TransientFailure):
            processor.place_order(customer, checkout_payload((first, 2), (second, 1)))

        assert products.stock_of(first) == 5
        assert orders.list() == []
        assert uow.rollbacks == 1
        assert audit.find("order_created") == []

    def test_concurrent_change_between_pricing_and_reservation_aborts(
        self, processor, customer, jacket, products, orders, monkeypatch
    ):
        # The product still has stock, but its price moved after it was priced.
        monkeypatch.setattr(
            products, "reserve_stock", lambda id, quantity, expected_price: False
        )
        with pytest.raises(TransientFailure):
            processor.place_order(customer, checkout_payload((jacket, 1)))
        assert orders.list() == []
        assert products.stock_of(jacket) == 10


class TestConcurrentCheckout:
    SUPPLY = 5
    BUYERS = 10

    def test_exactly_supply_orders_succeed(self, identities, products, orders, audit):
        product = products.add("Limited Print", "40.00", self.SUPPLY)
        processor = OrderTransactionProcessor(
            orders, products, FakeUnitOfWork(products, orders), audit, PricingPolicy()
        )
        buyers = [identities.add(f"Buyer {i}", f"buyer{i}@example.com") for i in range(self.BUYERS)]

        def attempt(buyer):
            try:
                processor.place_order(buyer, checkout_payload((product, 1)))
            except InsufficientStock:
                return "insufficient"
            return "success"

        with ThreadPoolExecutor(max_workers=self.BUYERS) as pool:
            results = list(pool.map(attempt, buyers))

        assert results.count("success") == self.SUPPLY
        assert results.count("insufficient") == self.BUYERS - self.SUPPLY
        assert products.stock_of(product) == 0
        assert len(orders.list()) == self.SUPPLY


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancelOrder:
    def test_cancel_releases_stock(self, processor, customer, jacket, products, audit):
        placed = processor.place_order(customer, checkout_payload((jacket, 4)))
        assert products.stock_of(jacket) == 6

        order = processor.cancel_order(customer, placed.order_id)

        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_at is not None
        assert products.stock_of(jacket) == 10
        assert "order_cancelled" in audit.actions()

    def test_only_owner_can_cancel(self, processor, customer, jacket, identities):
        placed = processor.place_order(customer, checkout_payload((jacket, 1)))
        stranger = identities.add("Eve", "eve@example.com", Role.ADMIN)
        with pytest.raises(OrderNotFound):
            processor.cancel_order(stranger, placed.order_id)

    def test_only_pending_orders(self, processor, customer, jacket, orders, products):
        placed = processor.place_order(customer, checkout_payload((jacket, 1)))
        orders.get_by_id(placed.order_id).status = OrderStatus.PAID
        with pytest.raises(InvalidOrderState):
            processor.cancel_order(customer, placed.order_id)
        assert products.stock_of(jacket) == 9
