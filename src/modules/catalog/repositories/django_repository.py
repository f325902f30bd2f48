"""Django ORM implementation of the Product repository.

Methods return ``None`` instead of raising for missing or malformed ids;
the service layer decides how to translate a missing entity.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F

from modules.catalog.exceptions import AlreadyRated
from modules.catalog.models import Product, ProductRating
from modules.catalog.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: Any) -> Optional[Product]:
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_available(self, id: Any) -> Optional[Product]:
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: Any) -> Optional[Product]:
        """Must run inside a transaction."""
        try:
            return Product.objects.select_for_update().alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        """List available products with optional Django ORM look-ups.

        Examples of valid filters::

            {"category": "Shirts"}
            {"name__icontains": "fit"}
        """
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def slug_taken(self, slug: str, exclude_id: Any = None) -> bool:
        queryset = Product.objects.filter(slug=slug.strip().lower())
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return queryset.exists()

    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id), slug=entity.slug)
        return entity

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def reserve_stock(self, id: Any, quantity: int, expected_price: Decimal) -> bool:
        updated = (
            Product.objects.alive()
            .filter(id=id, stock__gte=quantity, price=expected_price)
            .update(stock=F("stock") - quantity)
        )
        return updated == 1

    def release_stock(self, id: Any, quantity: int) -> None:
        Product.objects.filter(id=id).update(stock=F("stock") + quantity)

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def has_rated(self, product_id: Any, identity_id: Any) -> bool:
        return ProductRating.objects.filter(
            product_id=product_id, identity_id=identity_id
        ).exists()

    def add_rating(self, rating: ProductRating) -> ProductRating:
        try:
            with transaction.atomic():
                rating.save()
        except IntegrityError as exc:
            raise AlreadyRated() from exc
        return rating
