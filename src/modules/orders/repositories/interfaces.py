"""Order repository interface.

Extends ``IRepository[Order]`` with the queries checkout, payment and
the identity/catalog administration rules depend on.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root (Order + items)."""

    resource_type = "order"

    @abstractmethod
    def create(self, order: Order, items: Sequence[OrderItem]) -> Order:
        """Insert a new order together with its line items."""

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[Order]:
        """Retrieve an order with its items and owner."""

    @abstractmethod
    def get_for_update(self, id: Any) -> Optional[Order]:
        """Retrieve an order holding its row lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def find_by_payment_id(self, payment_id: str) -> Optional[Order]:
        """Return the order already carrying ``payment_id``, if any."""

    @abstractmethod
    def record_payment(self, order: Order) -> Order:
        """Persist payment fields; raise ``DuplicatePayment`` on a unique clash."""

    @abstractmethod
    def has_active_orders(self, owner_id: Any) -> bool:
        """``True`` when the owner has a paid, undelivered order."""

    @abstractmethod
    def count_active_orders_for_product(self, product_id: Any) -> int:
        """Number of paid, undelivered orders containing the product."""

    @abstractmethod
    def has_paid_order_with_product(self, owner_id: Any, product_id: Any) -> bool:
        """``True`` when the owner has a paid order containing the product."""

    @abstractmethod
    def items_of(self, order: Order) -> List[OrderItem]:
        """Line items of ``order``."""
