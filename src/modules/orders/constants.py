"""Order domain constants.

Statuses, payment methods and the limits applied to checkout, payment
confirmation and delivery requests.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    PAYPAL = "PayPal", "PayPal"
    STRIPE = "Stripe", "Stripe"
    CASH_ON_DELIVERY = "CashOnDelivery", "Cash on delivery"


ACCEPTED_PAYMENT_STATUSES: frozenset[str] = frozenset({"COMPLETED", "APPROVED", "CAPTURED"})

# Shipping address field -> maximum length.
SHIPPING_ADDRESS_FIELDS: dict[str, int] = {
    "full_name": 100,
    "address": 200,
    "city": 50,
    "postal_code": 20,
    "country": 50,
}

MAX_ORDER_ITEMS = 50
MAX_ITEM_QUANTITY = 100

PAYMENT_ID_MIN_LENGTH = 10
PAYMENT_ID_MAX_LENGTH = 100

DELIVERY_NOTES_MAX_LENGTH = 500
SUSPICIOUS_DELIVERY_HOURS = 24

ORDER_NUMBER_MAX_RETRIES = 5
