"""Catalog service layer (Use Cases).

Business rules enforced here:
- Only a super admin may create, change or delete an ``is_critical``
  product, or toggle the flag.
- Updates are validated field by field; every error is reported together.
  The product row is locked while the update is applied.
- A product referenced by a paid, undelivered order cannot be deleted.
  Deletion is a soft delete.
- A rating needs a prior paid order containing the product, and each
  identity rates a product once.  Aggregates are refreshed in the same
  transaction as the rating insert.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, TypeVar

import structlog
from django.utils import timezone

from modules.catalog import ratings
from modules.catalog.exceptions import (
    AlreadyRated,
    CriticalProductProtected,
    ProductHasActiveOrders,
    ProductNotFound,
    PurchaseRequired,
    SlugAlreadyExists,
)
from modules.catalog.models import Product, ProductRating
from modules.catalog.rules import RATING_RULES, clean_product_payload
from modules.core.exceptions import InvalidRequest
from modules.core.validation import validate

if TYPE_CHECKING:
    from modules.accounts.models import Identity
    from modules.audit.sink import IAuditSink
    from modules.catalog.repositories.interfaces import IProductRepository
    from modules.core.unit_of_work import IUnitOfWork
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")

REVIEW_MAX_LENGTH = 1000


class CatalogService:
    def __init__(
        self,
        product_repository: IProductRepository,
        order_repository: IOrderRepository,
        unit_of_work: IUnitOfWork,
        audit_sink: IAuditSink,
    ) -> None:
        self._products = product_repository
        self._orders = order_repository
        self._uow = unit_of_work
        self._audit = audit_sink

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _guarded(self, actor: Identity, product_id: Any, action: str, work: Callable[[], T]) -> T:
        try:
            return self._uow.with_transaction(work)
        except CriticalProductProtected:
            self._audit.unauthorized_access(
                f"system_critical_product_{action}", actor=actor.id, subject=product_id
            )
            raise

    @staticmethod
    def _ensure_may_modify(actor: Identity, product: Product, changes: Dict[str, Any]) -> None:
        touches_flag = "is_critical" in changes and changes["is_critical"] != product.is_critical
        if (product.is_critical or touches_flag) and not actor.is_super_admin:
            raise CriticalProductProtected()

    def _lock(self, product_id: Any) -> Product:
        product = self._products.get_for_update(product_id)
        if product is None:
            raise ProductNotFound()
        return product

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_product(self, product_id: Any) -> Product:
        product = self._products.get_available(product_id)
        if product is None:
            raise ProductNotFound()
        return product

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create_product(self, actor: Identity, data: Any) -> Product:
        changes, errors = clean_product_payload(data, creating=True)
        if errors:
            raise InvalidRequest(errors=errors)
        if changes.get("is_critical") and not actor.is_super_admin:
            self._audit.unauthorized_access(
                "system_critical_product_create", actor=actor.id, subject=changes["slug"]
            )
            raise CriticalProductProtected()

        def work() -> Product:
            if self._products.slug_taken(changes["slug"]):
                raise SlugAlreadyExists()
            return self._products.save(Product(last_modified_by=actor, **changes))

        product = self._uow.with_transaction(work)
        self._audit.admin_action(
            "product_create", actor=actor.id, subject=product.id, name=product.name
        )
        return product

    def update_product(self, actor: Identity, product_id: Any, data: Any) -> Product:
        changes, errors = clean_product_payload(data)
        if errors:
            raise InvalidRequest(errors=errors)

        def work() -> Product:
            product = self._lock(product_id)
            self._ensure_may_modify(actor, product, changes)
            if "slug" in changes and self._products.slug_taken(
                changes["slug"], exclude_id=product.pk
            ):
                raise SlugAlreadyExists()
            for field, value in changes.items():
                setattr(product, field, value)
            product.last_modified_by = actor
            return self._products.save(product)

        product = self._guarded(actor, product_id, "update", work)
        self._audit.admin_action(
            "product_update", actor=actor.id, subject=product.id, changes=sorted(changes)
        )
        logger.bind(product_id=str(product.id)).info("product.updated", fields=sorted(changes))
        return product

    def delete_product(self, actor: Identity, product_id: Any) -> Product:
        def work() -> Product:
            product = self._lock(product_id)
            self._ensure_may_modify(actor, product, {})
            active = self._orders.count_active_orders_for_product(product.pk)
            if active:
                raise ProductHasActiveOrders(
                    f"Cannot delete product. {active} active orders depend on this product."
                )
            product.deleted_at = timezone.now()
            product.deleted_by = actor
            return self._products.save(product)

        product = self._guarded(actor, product_id, "delete", work)
        self._audit.admin_action(
            "product_delete", actor=actor.id, subject=product.id, name=product.name
        )
        logger.bind(product_id=str(product.id)).info("product.soft_deleted")
        return product

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def rate_product(self, identity: Identity, product_id: Any, data: Any) -> Product:
        result = validate(data, RATING_RULES)
        if not result.valid:
            raise InvalidRequest(errors=result.errors)
        score = data["rating"]
        review = (data.get("review") or "").strip()[:REVIEW_MAX_LENGTH]

        def work() -> Product:
            product = self._lock(product_id)
            if self._products.has_rated(product.pk, identity.pk):
                raise AlreadyRated()
            if not self._orders.has_paid_order_with_product(identity.pk, product.pk):
                raise PurchaseRequired()
            self._products.add_rating(
                ProductRating(product=product, identity=identity, rating=score, review=review)
            )
            product.rating_counts = ratings.add_vote(product.rating_counts, score)
            product.total_ratings = sum(product.rating_counts)
            product.rating = ratings.weighted_average(product.rating_counts)
            if review:
                product.num_reviews += 1
            return self._products.save(product)

        product = self._uow.with_transaction(work)
        self._audit.user_action(
            "product_rated",
            actor=identity.id,
            subject=product.id,
            rating=score,
            has_review=bool(review),
        )
        return product
