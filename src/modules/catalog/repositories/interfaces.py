"""Product repository interface.

Extends ``IRepository[Product]`` with the look-ups checkout needs
(available products, conditional stock moves) and the rating store.
"""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.models import Product, ProductRating


class IProductRepository(IRepository["Product"]):
    resource_type = "product"

    @abstractmethod
    def get_available(self, id: Any) -> Optional[Product]:
        """Retrieve a non-deleted product, or ``None``."""

    @abstractmethod
    def get_for_update(self, id: Any) -> Optional[Product]:
        """Retrieve a non-deleted product holding its row lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List non-deleted products."""

    @abstractmethod
    def slug_taken(self, slug: str, exclude_id: Any = None) -> bool:
        """``True`` when another product uses ``slug``."""

    @abstractmethod
    def reserve_stock(self, id: Any, quantity: int, expected_price: Decimal) -> bool:
        """Atomically decrement stock by ``quantity``.

        Succeeds only while the product is alive, holds at least ``quantity``
        units and still costs ``expected_price``.  Returns ``False`` and
        changes nothing otherwise.
        """

    @abstractmethod
    def release_stock(self, id: Any, quantity: int) -> None:
        """Return ``quantity`` units to stock."""

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    @abstractmethod
    def has_rated(self, product_id: Any, identity_id: Any) -> bool:
        """``True`` when the identity already rated the product."""

    @abstractmethod
    def add_rating(self, rating: ProductRating) -> ProductRating:
        """Persist a new rating (raises ``AlreadyRated`` on a duplicate)."""
