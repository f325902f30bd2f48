from __future__ import annotations

import uuid

import pytest

from tests.factories import checkout_payload

pytestmark = pytest.mark.integration


def test_health_reports_services(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"]["database"]["status"] == "up"
    assert body["services"]["cache"]["status"] == "up"


def test_request_id_is_echoed(api_client):
    response = api_client.get("/health", HTTP_X_REQUEST_ID="req-abc-123")
    assert response["X-Request-ID"] == "req-abc-123"


def test_request_id_is_generated(api_client):
    response = api_client.get("/health")
    assert uuid.UUID(response["X-Request-ID"]).version == 4


def test_audit_records_carry_request_id(user_client, product, audit_sink):
    user_client.post(
        "/api/v1/orders/",
        checkout_payload((product, 1)),
        format="json",
        HTTP_X_REQUEST_ID="checkout-1",
    )
    (record,) = audit_sink.find("order_created")
    assert record.context["correlation_id"] == "checkout-1"


def test_unknown_route(api_client):
    assert api_client.get("/api/v1/nothing-here/").status_code == 404


def test_unsafe_request_id_is_replaced(api_client):
    response = api_client.get("/health", HTTP_X_REQUEST_ID="<script>alert(1)</script>")
    assert uuid.UUID(response["X-Request-ID"]).version == 4
