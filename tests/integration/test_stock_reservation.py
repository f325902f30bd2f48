"""Checkout against the real ORM repositories and DjangoUnitOfWork.

Covers the conditional stock decrement in ``ProductDjangoRepository`` and
the all-or-nothing guarantee of a multi-line checkout:

- A product can never be oversold; 10 buyers against stock 5 produce
  exactly 5 orders and leave stock at 0.
- A price change between pricing and reservation aborts the checkout with
  ``TransientFailure`` and writes nothing.
- When a later line fails, no order, no line item and no stock change of
  an earlier line survives.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.utils import timezone

from modules.catalog.models import Product
from modules.catalog.repositories.django_repository import ProductDjangoRepository
from modules.core.exceptions import TransientFailure
from modules.core.unit_of_work import DjangoUnitOfWork
from modules.orders.exceptions import InsufficientStock
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderTransactionProcessor
from tests.factories import checkout_payload, make_identity, make_product
from tests.fakes import RecordingAuditSink

pytestmark = pytest.mark.integration

INITIAL_STOCK = 5
NUM_BUYERS = 10


@pytest.fixture()
def repository():
    return ProductDjangoRepository()


@pytest.fixture()
def processor():
    return OrderTransactionProcessor(
        OrderDjangoRepository(),
        ProductDjangoRepository(),
        DjangoUnitOfWork(),
        RecordingAuditSink(),
    )


@pytest.fixture()
def two_products():
    """Two products ordered by id, the way checkout reserves them."""
    first = make_product("Rain Shell", "40.00", 6)
    second = make_product("Fleece Vest", "55.00", 4)
    return sorted([first, second], key=lambda p: p.id)


def reprice_after_quote(monkeypatch, processor, product, new_price):
    """Change ``product``'s price once checkout has priced its lines."""
    original = processor._price_lines

    def price_then_change(request):
        priced = original(request)
        Product.objects.filter(id=product.id).update(price=Decimal(new_price))
        return priced

    monkeypatch.setattr(processor, "_price_lines", price_then_change)


def stock_of(product):
    return Product.objects.get(id=product.id).stock


class TestReserveStock:
    def test_decrements_when_stock_and_price_match(self, repository, product):
        assert repository.reserve_stock(product.id, 3, Decimal("100.00"))
        assert stock_of(product) == 7

    def test_stale_price_reserves_nothing(self, repository, product):
        Product.objects.filter(id=product.id).update(price=Decimal("120.00"))

        assert not repository.reserve_stock(product.id, 1, Decimal("100.00"))
        assert stock_of(product) == 10

    def test_short_stock_reserves_nothing(self, repository, product):
        assert not repository.reserve_stock(product.id, 11, Decimal("100.00"))
        assert stock_of(product) == 10

    def test_exact_stock_is_reservable(self, repository, product):
        assert repository.reserve_stock(product.id, 10, Decimal("100.00"))
        assert stock_of(product) == 0

    def test_soft_deleted_product_reserves_nothing(self, repository, product):
        Product.objects.filter(id=product.id).update(deleted_at=timezone.now())

        assert not repository.reserve_stock(product.id, 1, Decimal("100.00"))
        assert stock_of(product) == 10

    def test_release_returns_units(self, repository, product):
        repository.reserve_stock(product.id, 4, Decimal("100.00"))
        repository.release_stock(product.id, 4)
        assert stock_of(product) == 10


class TestCheckoutAtomicity:
    def test_price_change_before_reservation(self, monkeypatch, processor, user, product):
        reprice_after_quote(monkeypatch, processor, product, "120.00")

        with pytest.raises(TransientFailure):
            processor.place_order(user, checkout_payload((product, 2)))

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert stock_of(product) == 10

    def test_failing_second_line_rolls_back_first(
        self, monkeypatch, processor, user, two_products
    ):
        first, second = two_products
        reprice_after_quote(monkeypatch, processor, second, "60.00")

        with pytest.raises(TransientFailure):
            processor.place_order(user, checkout_payload((first, 2), (second, 1)))

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert stock_of(first) == 6
        assert stock_of(second) == 4

    def test_stock_drained_before_reservation(self, monkeypatch, processor, user, two_products):
        first, second = two_products
        original = processor._price_lines

        def price_then_drain(request):
            priced = original(request)
            Product.objects.filter(id=second.id).update(stock=0)
            return priced

        monkeypatch.setattr(processor, "_price_lines", price_then_drain)

        with pytest.raises(InsufficientStock):
            processor.place_order(user, checkout_payload((first, 1), (second, 1)))

        assert Order.objects.count() == 0
        assert stock_of(first) == 6

    def test_successful_checkout_persists_everything(self, processor, user, two_products):
        first, second = two_products

        placed = processor.place_order(user, checkout_payload((first, 2), (second, 1)))

        order = Order.objects.get(id=placed.order_id)
        assert order.items.count() == 2
        assert order.total_price == placed.total_price
        assert stock_of(first) == 4
        assert stock_of(second) == 3


class TestStockExhaustion:
    """Many buyers against a small stock never oversell it."""

    @pytest.fixture()
    def buyers(self):
        return [make_identity(f"buyer{i}@example.com") for i in range(NUM_BUYERS)]

    def test_buyers_exhaust_stock(self, processor, buyers):
        console = make_product("Handheld Console", "299.99", INITIAL_STOCK)
        results = []

        for buyer in buyers:
            try:
                processor.place_order(buyer, checkout_payload((console, 1)))
                results.append("success")
            except InsufficientStock:
                results.append("insufficient")

        assert results.count("success") == INITIAL_STOCK
        assert results.count("insufficient") == NUM_BUYERS - INITIAL_STOCK
        assert Order.objects.filter(items__product=console).count() == INITIAL_STOCK
        assert stock_of(console) == 0

    def test_units_are_conserved(self, processor, buyers):
        console = make_product("Handheld Console", "299.99", INITIAL_STOCK)

        for i, buyer in enumerate(buyers):
            try:
                processor.place_order(buyer, checkout_payload((console, 1 + i % 2)))
            except InsufficientStock:
                pass

        sold = sum(
            OrderItem.objects.filter(product=console).values_list("quantity", flat=True)
        )
        assert stock_of(console) >= 0
        assert sold + stock_of(console) == INITIAL_STOCK

