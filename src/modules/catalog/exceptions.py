"""Catalog domain exceptions."""

from __future__ import annotations

from modules.core.exceptions import Conflict, Forbidden, InvalidRequest, NotFound


class ProductNotFound(NotFound):
    default_message = "Product not found."


class SlugAlreadyExists(Conflict):
    code = "slug_taken"
    default_message = "A product with this slug already exists."


class CriticalProductProtected(Forbidden):
    default_message = "Super admin privileges required to modify system critical products."


class ProductHasActiveOrders(InvalidRequest):
    code = "active_orders"
    default_message = "Cannot delete product. Active orders depend on this product."


class AlreadyRated(Conflict):
    code = "already_rated"
    default_message = (
        "You have already rated this product. Each user can rate a product only once."
    )


class PurchaseRequired(Forbidden):
    code = "purchase_required"
    default_message = "You can only rate products you have purchased."
