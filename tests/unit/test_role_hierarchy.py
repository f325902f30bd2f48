"""Unit tests for RoleHierarchyEnforcer against in-memory fakes."""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
import uuid6
from freezegun import freeze_time

from modules.accounts.exceptions import (
    IdentityHasActiveOrders,
    IdentityNotFound,
    LastSuperAdmin,
    RoleChangeForbidden,
    SelfModificationRejected,
)
from modules.accounts.hierarchy import RoleHierarchyEnforcer, anonymized_email
from modules.accounts.models import Identity, Role
from modules.orders.models import Order
from tests.fakes import (
    FakeUnitOfWork,
    InMemoryIdentityStore,
    InMemoryOrderRepository,
    RecordingAuditSink,
)

pytestmark = pytest.mark.unit


@pytest.fixture()
def identities():
    return InMemoryIdentityStore()


@pytest.fixture()
def orders():
    return InMemoryOrderRepository()


@pytest.fixture()
def audit():
    return RecordingAuditSink()


@pytest.fixture()
def enforcer(identities, orders, audit):
    return RoleHierarchyEnforcer(identities, orders, FakeUnitOfWork(identities, orders), audit)


@pytest.fixture()
def owner(identities):
    return identities.add("Owner", "owner@example.com", Role.SUPER_ADMIN)


@pytest.fixture()
def admin(identities):
    return identities.add("Admin", "admin@example.com", Role.ADMIN)


@pytest.fixture()
def customer(identities):
    return identities.add("Ada", "ada@example.com")


@pytest.fixture()
def stale_super_admin():
    """A super admin demoted or removed after its token was issued."""
    return Identity(name="Former", email="former@example.com", role=Role.SUPER_ADMIN)


def paid_order(orders, owner, delivered=False):
    order = Order(
        owner=owner,
        shipping_full_name="Ada Lovelace",
        shipping_address="12 Analytical Row",
        shipping_city="London",
        shipping_postal_code="N1 9GU",
        shipping_country="UK",
        payment_method="PayPal",
        items_price=Decimal("10.00"),
        tax_price=Decimal("1.50"),
        shipping_price=Decimal("25.00"),
        total_price=Decimal("36.50"),
        is_paid=True,
        is_delivered=delivered,
    )
    return orders.create(order, [])


class TestChangeRole:
    def test_super_admin_promotes_user(self, enforcer, owner, customer, audit):
        target = enforcer.change_role(owner, customer.pk, Role.ADMIN)

        assert target.role == Role.ADMIN
        (record,) = audit.find("role_changed")
        assert record.actor == owner.id.hex
        assert record.subject == customer.id.hex
        assert record.context["previous_role"] == "User"
        assert record.context["new_role"] == "Admin"

    def test_same_role_is_a_no_op(self, enforcer, owner, customer, audit):
        enforcer.change_role(owner, customer.pk, Role.USER)
        assert audit.find("role_changed") == []

    def test_admin_cannot_change_roles(self, enforcer, admin, customer, audit):
        with pytest.raises(RoleChangeForbidden):
            enforcer.change_role(admin, customer.pk, Role.ADMIN)
        assert customer.role == Role.USER
        (record,) = audit.find("admin_modification_denied")
        assert record.category == "unauthorized_access"

    def test_admin_cannot_touch_another_admin(self, enforcer, identities, admin, audit):
        peer = identities.add("Peer", "peer@example.com", Role.ADMIN)
        with pytest.raises(RoleChangeForbidden):
            enforcer.change_role(admin, peer.pk, Role.USER)
        assert peer.role == Role.ADMIN
        assert "admin_modification_denied" in audit.actions()

    def test_super_admin_cannot_demote_self(self, enforcer, owner, audit):
        with pytest.raises(SelfModificationRejected):
            enforcer.change_role(owner, owner.pk, Role.ADMIN)
        assert owner.role == Role.SUPER_ADMIN
        (record,) = audit.find("self_modification")
        assert record.category == "security_violation"

    def test_demoting_one_of_two_super_admins(self, enforcer, identities, owner):
        other = identities.add("Second", "second@example.com", Role.SUPER_ADMIN)
        target = enforcer.change_role(owner, other.pk, Role.ADMIN)
        assert target.role == Role.ADMIN

    def test_last_super_admin_cannot_be_demoted(self, enforcer, owner, stale_super_admin, audit):
        with pytest.raises(LastSuperAdmin):
            enforcer.change_role(stale_super_admin, owner.pk, Role.ADMIN)
        assert owner.role == Role.SUPER_ADMIN
        (record,) = audit.find("last_super_admin")
        assert record.category == "security_violation"
        assert record.subject == owner.id.hex

    def test_unknown_target(self, enforcer, owner):
        with pytest.raises(IdentityNotFound):
            enforcer.change_role(owner, uuid6.uuid7(), Role.ADMIN)


class TestDeleteIdentity:
    def test_soft_deletes_and_anonymizes(self, enforcer, owner, customer, audit):
        with freeze_time("2026-03-01 12:00:00"):
            target = enforcer.delete_identity(owner, customer.pk)

        epoch = int(datetime(2026, 3, 1, 12, tzinfo=dt_timezone.utc).timestamp())
        assert target.email == f"deleted_{epoch}_ada@example.com"
        assert target.is_deleted
        assert target.deleted_by is owner
        (record,) = audit.find("user_deleted")
        assert record.context["deleted_email"] == "ada@example.com"

    def test_deleted_email_is_free_again(self, enforcer, identities, owner, customer):
        enforcer.delete_identity(owner, customer.pk)
        assert not identities.email_taken("ada@example.com")

    def test_cannot_delete_self(self, enforcer, owner, audit):
        with pytest.raises(SelfModificationRejected):
            enforcer.delete_identity(owner, owner.pk)
        assert not owner.is_deleted
        assert "self_modification" in audit.actions()

    def test_admin_cannot_delete_admin(self, enforcer, identities, admin):
        peer = identities.add("Peer", "peer@example.com", Role.ADMIN)
        with pytest.raises(RoleChangeForbidden):
            enforcer.delete_identity(admin, peer.pk)
        assert not peer.is_deleted

    def test_admin_can_delete_user(self, enforcer, admin, customer):
        assert enforcer.delete_identity(admin, customer.pk).is_deleted

    def test_last_super_admin_cannot_be_deleted(self, enforcer, owner, stale_super_admin, audit):
        with pytest.raises(LastSuperAdmin):
            enforcer.delete_identity(stale_super_admin, owner.pk)
        assert not owner.is_deleted
        assert "last_super_admin" in audit.actions()
        assert audit.find("user_deleted") == []

    def test_super_admin_deletes_peer_super_admin(self, enforcer, identities, owner):
        other = identities.add("Second", "second@example.com", Role.SUPER_ADMIN)
        assert enforcer.delete_identity(owner, other.pk).is_deleted

    def test_paid_undelivered_order_blocks_deletion(self, enforcer, orders, owner, customer):
        paid_order(orders, customer)
        with pytest.raises(IdentityHasActiveOrders):
            enforcer.delete_identity(owner, customer.pk)
        assert not customer.is_deleted
        assert customer.email == "ada@example.com"

    def test_delivered_orders_do_not_block(self, enforcer, orders, owner, customer):
        paid_order(orders, customer, delivered=True)
        assert enforcer.delete_identity(owner, customer.pk).is_deleted


def test_anonymized_email_is_capped():
    when = datetime(2026, 3, 1, tzinfo=dt_timezone.utc)
    assert len(anonymized_email("a" * 250 + "@x.io", when)) == 254
