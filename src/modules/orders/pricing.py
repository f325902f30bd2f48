"""Server-side order pricing.

Each field is rounded once, to two decimals with halves away from zero::

    tax_price      = round2(items_price * tax_rate)
    shipping_price = 0 if items_price >= free_shipping_threshold else flat_fee
    total_price    = round2(items_price + tax_price + shipping_price)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from modules.core.money import round2


@dataclass(frozen=True)
class PriceQuote:
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.15")
    free_shipping_threshold: Decimal = Decimal("200")
    flat_shipping_fee: Decimal = Decimal("25")

    @classmethod
    def from_settings(cls) -> PricingPolicy:
        return cls(
            tax_rate=Decimal(str(settings.ORDER_TAX_RATE)),
            free_shipping_threshold=Decimal(str(settings.ORDER_FREE_SHIPPING_THRESHOLD)),
            flat_shipping_fee=Decimal(str(settings.ORDER_FLAT_SHIPPING_FEE)),
        )

    def quote(self, items_price: Decimal) -> PriceQuote:
        items_price = round2(items_price)
        tax_price = round2(items_price * self.tax_rate)
        if items_price >= self.free_shipping_threshold:
            shipping_price = Decimal("0.00")
        else:
            shipping_price = round2(self.flat_shipping_fee)
        return PriceQuote(
            items_price=items_price,
            tax_price=tax_price,
            shipping_price=shipping_price,
            total_price=round2(items_price + tax_price + shipping_price),
        )
