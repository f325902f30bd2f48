from __future__ import annotations

import pytest
from django.apps import apps
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.accounts.models import Role
from tests.factories import client_for, make_identity, make_product
from tests.fakes import RecordingAuditSink


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def audit_sink(monkeypatch):
    """Replace the process audit sink with one that keeps records in memory."""
    sink = RecordingAuditSink()
    monkeypatch.setattr(apps.get_app_config("audit"), "sink", sink)
    return sink


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture()
def user():
    return make_identity("ada@example.com")


@pytest.fixture()
def other_user():
    return make_identity("grace@example.com")


@pytest.fixture()
def admin():
    return make_identity("admin@example.com", Role.ADMIN)


@pytest.fixture()
def super_admin():
    return make_identity("owner@example.com", Role.SUPER_ADMIN)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def user_client(user):
    return client_for(user)


@pytest.fixture()
def other_client(other_user):
    return client_for(other_user)


@pytest.fixture()
def admin_client(admin):
    return client_for(admin, csrf=True)


@pytest.fixture()
def super_admin_client(super_admin):
    return client_for(super_admin, csrf=True)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    return make_product("Trail Jacket", "100.00", 10, category="Outerwear", brand="Northwind")


@pytest.fixture()
def cheap_product():
    return make_product("Wool Socks", "12.50", 3, category="Accessories")
