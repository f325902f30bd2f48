"""Builders shared by the test modules."""

from __future__ import annotations

from decimal import Decimal

from rest_framework.test import APIClient

from modules.accounts.models import Identity, Role
from modules.accounts.tokens import issue_session_tokens
from modules.catalog.models import Product

PASSWORD = "Str0ng-passw0rd!"

SHIPPING_ADDRESS = {
    "full_name": "Ada Lovelace",
    "address": "12 Analytical Row",
    "city": "London",
    "postal_code": "NW1 6XE",
    "country": "United Kingdom",
}


def make_identity(email: str, role: Role = Role.USER, name: str = "") -> Identity:
    return Identity.objects.create_user(
        email, password=PASSWORD, name=name or email.split("@")[0].title(), role=role
    )


def make_product(name: str, price: str, stock: int, **extra) -> Product:
    return Product.objects.create(
        name=name,
        slug=extra.pop("slug", name.lower().replace(" ", "-")),
        category=extra.pop("category", "General"),
        price=Decimal(price),
        stock=stock,
        **extra,
    )


def client_for(identity: Identity, csrf: bool = False) -> APIClient:
    """APIClient carrying a real access token for ``identity``.

    With ``csrf=True`` it also fetches an anti-forgery token and sends it on
    every later request.
    """
    client = APIClient()
    authorization = f"Bearer {issue_session_tokens(identity)['access']}"
    client.credentials(HTTP_AUTHORIZATION=authorization)
    if csrf:
        response = client.get("/api/v1/auth/csrf-token/")
        assert response.status_code == 200, response.content
        client.credentials(
            HTTP_AUTHORIZATION=authorization,
            HTTP_X_CSRF_TOKEN=response.json()["csrf_token"],
        )
    return client


def checkout_payload(*lines, **overrides) -> dict:
    """Build a checkout body from ``(product, quantity)`` pairs."""
    payload = {
        "items": [{"product_id": p.id.hex, "quantity": q} for p, q in lines],
        "shipping_address": dict(SHIPPING_ADDRESS),
        "payment_method": "PayPal",
    }
    payload.update(overrides)
    return payload


def payment_payload(amount=None, payment_id: str = "PAY-0000000001", **overrides) -> dict:
    payload = {
        "id": payment_id,
        "status": "COMPLETED",
        "email_address": "payer@example.com",
    }
    if amount is not None:
        payload["amount"] = amount
    payload.update(overrides)
    return payload
