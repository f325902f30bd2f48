"""In-memory collaborators for unit tests.

The fakes honour the same contracts as the Django implementations:
repositories return ``None`` for missing ids, ``reserve_stock`` is a
conditional decrement, and ``FakeUnitOfWork`` restores every registered
store when the unit of work raises.
"""

from __future__ import annotations

import copy
import threading
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar
from uuid import UUID

from modules.accounts.models import Identity, Role
from modules.accounts.repositories.interfaces import IIdentityStore
from modules.audit.sink import AuditRecord, IAuditSink
from modules.catalog.exceptions import AlreadyRated
from modules.catalog.models import Product, ProductRating
from modules.catalog.repositories.interfaces import IProductRepository
from modules.core.unit_of_work import IUnitOfWork
from modules.orders.exceptions import DuplicatePayment
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

T = TypeVar("T")


def _key(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class _Store:
    """Row storage with snapshot/restore for the fake unit of work."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.rows: Dict[UUID, Any] = {}

    def snapshot(self) -> Dict[UUID, Any]:
        with self.lock:
            return copy.deepcopy(self.rows)

    def restore(self, rows: Dict[UUID, Any]) -> None:
        with self.lock:
            self.rows = rows


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class RecordingAuditSink(IAuditSink):
    def __init__(self) -> None:
        super().__init__()
        self.records: List[AuditRecord] = []
        self._lock = threading.Lock()
        self.open()

    def write(self, record: AuditRecord) -> None:
        with self._lock:
            self.records.append(record)

    def actions(self) -> List[str]:
        return [record.action for record in self.records]

    def find(self, action: str) -> List[AuditRecord]:
        return [record for record in self.records if record.action == action]


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


class FakeUnitOfWork(IUnitOfWork):
    """Serializes units of work and rolls every store back on error."""

    def __init__(self, *repositories: Any) -> None:
        self._stores = [repo.store for repo in repositories]
        self._lock = threading.RLock()
        self.commits = 0
        self.rollbacks = 0

    def with_transaction(self, work: Callable[[], T]) -> T:
        with self._lock:
            snapshots = [store.snapshot() for store in self._stores]
            try:
                result = work()
            except Exception:
                for store, rows in zip(self._stores, snapshots):
                    store.restore(rows)
                self.rollbacks += 1
                raise
            self.commits += 1
            return result


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


class InMemoryIdentityStore(IIdentityStore):
    def __init__(self) -> None:
        self.store = _Store()

    def add(self, name: str, email: str, role: Role = Role.USER) -> Identity:
        identity = Identity(name=name, email=email.lower(), role=role)
        identity.set_unusable_password()
        return self.save(identity)

    def get_by_id(self, id: Any) -> Optional[Identity]:
        return self.store.rows.get(_key(id))

    def get_active(self, id: Any) -> Optional[Identity]:
        identity = self.get_by_id(id)
        return identity if identity is not None and not identity.is_deleted else None

    def get_for_update(self, id: Any) -> Optional[Identity]:
        return self.get_active(id)

    def get_by_email(self, email: str) -> Optional[Identity]:
        wanted = email.strip().lower()
        for identity in self.store.rows.values():
            if identity.email.lower() == wanted:
                return identity
        return None

    def email_taken(self, email: str, exclude_id: Any = None) -> bool:
        found = self.get_by_email(email)
        return found is not None and found.pk != _key(exclude_id)

    def lock_super_admins(self) -> List[Identity]:
        return [
            identity
            for identity in self.store.rows.values()
            if identity.role == Role.SUPER_ADMIN and not identity.is_deleted
        ]

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Identity]:
        rows = [identity for identity in self.store.rows.values() if not identity.is_deleted]
        for field, value in (filters or {}).items():
            rows = [identity for identity in rows if getattr(identity, field) == value]
        return rows

    def save(self, entity: Identity) -> Identity:
        with self.store.lock:
            self.store.rows[entity.pk] = entity
        return entity


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class InMemoryProductRepository(IProductRepository):
    def __init__(self) -> None:
        self.store = _Store()

    def add(self, name: str, price: str, stock: int, **extra: Any) -> Product:
        slug = extra.pop("slug", name.lower().replace(" ", "-"))
        product = Product(
            name=name,
            slug=slug,
            category=extra.pop("category", "General"),
            price=Decimal(price),
            stock=stock,
            **extra,
        )
        return self.save(product)

    def get_by_id(self, id: Any) -> Optional[Product]:
        return self.store.rows.get(_key(id))

    def get_available(self, id: Any) -> Optional[Product]:
        product = self.get_by_id(id)
        return product if product is not None and not product.is_deleted else None

    def get_for_update(self, id: Any) -> Optional[Product]:
        return self.get_available(id)

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        return [product for product in self.store.rows.values() if not product.is_deleted]

    def slug_taken(self, slug: str, exclude_id: Any = None) -> bool:
        return any(
            product.slug == slug and product.pk != _key(exclude_id)
            for product in self.store.rows.values()
        )

    def save(self, entity: Product) -> Product:
        with self.store.lock:
            self.store.rows[entity.pk] = entity
        return entity

    def reserve_stock(self, id: Any, quantity: int, expected_price: Decimal) -> bool:
        with self.store.lock:
            product = self.get_available(id)
            if product is None or product.stock < quantity or product.price != expected_price:
                return False
            product.stock -= quantity
            return True

    def release_stock(self, id: Any, quantity: int) -> None:
        with self.store.lock:
            product = self.get_by_id(id)
            if product is not None:
                product.stock += quantity

    def has_rated(self, product_id: Any, identity_id: Any) -> bool:
        return False

    def add_rating(self, rating: ProductRating) -> ProductRating:
        raise AlreadyRated()

    def stock_of(self, product: Product) -> int:
        return self.store.rows[product.pk].stock


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class InMemoryOrderRepository(IOrderRepository):
    def __init__(self) -> None:
        self.store = _Store()

    def create(self, order: Order, items: Sequence[OrderItem]) -> Order:
        if not order.order_number:
            order.order_number = Order.generate_order_number()
        for item in items:
            item.order = order
            item.subtotal = item.quantity * item.unit_price
        with self.store.lock:
            self.store.rows[order.pk] = {"order": order, "items": list(items)}
        return order

    def get_by_id(self, id: Any) -> Optional[Order]:
        row = self.store.rows.get(_key(id))
        return row["order"] if row is not None else None

    def get_for_update(self, id: Any) -> Optional[Order]:
        return self.get_by_id(id)

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return [row["order"] for row in self.store.rows.values()]

    def items_of(self, order: Order) -> List[OrderItem]:
        return list(self.store.rows[order.pk]["items"])

    def save(self, entity: Order) -> Order:
        with self.store.lock:
            self.store.rows[entity.pk]["order"] = entity
        return entity

    def record_payment(self, order: Order) -> Order:
        with self.store.lock:
            clash = self.find_by_payment_id(order.payment_id)
            if clash is not None and clash.pk != order.pk:
                raise DuplicatePayment()
            return self.save(order)

    def find_by_payment_id(self, payment_id: str) -> Optional[Order]:
        for row in self.store.rows.values():
            if row["order"].payment_id == payment_id:
                return row["order"]
        return None

    def has_active_orders(self, owner_id: Any) -> bool:
        return any(
            order.owner_id == owner_id and order.is_paid and not order.is_delivered
            for order in self.list()
        )

    def count_active_orders_for_product(self, product_id: Any) -> int:
        return sum(
            1
            for row in self.store.rows.values()
            if row["order"].is_paid
            and not row["order"].is_delivered
            and any(item.product_id == product_id for item in row["items"])
        )

    def has_paid_order_with_product(self, owner_id: Any, product_id: Any) -> bool:
        return any(
            row["order"].owner_id == owner_id
            and row["order"].is_paid
            and any(item.product_id == product_id for item in row["items"])
            for row in self.store.rows.values()
        )
