"""Catalog models: products and per-identity ratings.

Business rules implemented:
- Price is authoritative and server-set; it is never taken from an order
  request.  Price and stock can never be negative (database constraints).
- ``slug`` is unique and lowercase.
- ``is_critical`` products can only be changed or deleted by a super admin
  (enforced at the service layer).
- Rating aggregates are denormalized on the product: per-star counts
  ordered 5 stars first, total ratings, weighted average, written reviews.
- One rating per (product, identity).
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel


def empty_rating_counts() -> list:
    return [0, 0, 0, 0, 0]


class Product(SoftDeleteModel):
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    category = models.CharField(max_length=100)
    brand = models.CharField(max_length=100, blank=True, default="")
    description = models.TextField(blank=True, default="")
    image_url = models.URLField(max_length=500, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    stock = models.PositiveIntegerField(default=0)
    is_critical = models.BooleanField(default=False)
    is_featured = models.BooleanField(default=False)

    rating_counts = models.JSONField(default=empty_rating_counts)
    total_ratings = models.PositiveIntegerField(default=0)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("0"))
    num_reviews = models.PositiveIntegerField(default=0)

    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category"], name="products_category_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="products_price_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="products_stock_non_negative",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.slug:
            self.slug = self.slug.strip().lower()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.slug} - {self.name}"


class ProductRating(BaseModel):
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="ratings"
    )
    identity = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="ratings"
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    review = models.TextField(blank=True, default="", max_length=1000)

    class Meta:
        db_table = "product_ratings"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "identity"],
                name="product_ratings_one_per_identity",
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1) & models.Q(rating__lte=5),
                name="product_ratings_range",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.rating}* on {self.product_id}"
