"""Product DRF serializers (output only; writes go through ``rules``)."""

from __future__ import annotations

from rest_framework import serializers

from modules.catalog.models import Product, ProductRating


class ProductSerializer(serializers.ModelSerializer):
    """Public catalog view of a product."""

    id = serializers.UUIDField(format="hex", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "slug",
            "category",
            "brand",
            "description",
            "image_url",
            "price",
            "stock",
            "is_featured",
            "rating",
            "rating_counts",
            "total_ratings",
            "num_reviews",
        ]
        read_only_fields = fields


class AdminProductSerializer(ProductSerializer):
    class Meta(ProductSerializer.Meta):
        fields = ProductSerializer.Meta.fields + [
            "is_critical",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProductRatingSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(format="hex", read_only=True)
    name = serializers.CharField(source="identity.name", read_only=True)

    class Meta:
        model = ProductRating
        fields = ["id", "name", "rating", "review", "created_at"]
        read_only_fields = fields
