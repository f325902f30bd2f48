"""Order DRF serializers (output only).

Request payloads are validated by ``modules.orders.rules`` inside the
workers.  Two read views exist: the owner's, and the admin's, which adds
the owner, the payment result and delivery detail.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """Line item with the product snapshot taken at checkout."""

    product_id = serializers.UUIDField(format="hex", read_only=True)

    class Meta:
        model = OrderItem
        fields = ["product_id", "name", "quantity", "unit_price", "subtotal"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(format="hex", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    shipping_address = serializers.DictField(source="shipping", read_only=True)
    paid_at = serializers.SerializerMethodField()
    delivered_at = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "items",
            "shipping_address",
            "payment_method",
            "is_expedited",
            "items_price",
            "tax_price",
            "shipping_price",
            "total_price",
            "is_paid",
            "paid_at",
            "is_delivered",
            "delivered_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_paid_at(self, obj: Order):
        return serializers.DateTimeField().to_representation(obj.paid_at) if obj.is_paid else None

    def get_delivered_at(self, obj: Order):
        if not obj.is_delivered:
            return None
        return serializers.DateTimeField().to_representation(obj.delivered_at)


class OrderOwnerSerializer(serializers.Serializer):
    id = serializers.UUIDField(format="hex", read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)


class AdminOrderSerializer(OrderSerializer):
    owner = OrderOwnerSerializer(read_only=True)
    payment_result = serializers.SerializerMethodField()
    delivered_by = serializers.UUIDField(source="delivered_by_id", format="hex", read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + [
            "owner",
            "payment_result",
            "delivery_notes",
            "delivered_by",
            "updated_at",
        ]
        read_only_fields = fields

    def get_payment_result(self, obj: Order):
        result = obj.payment_result
        if result is None:
            return None
        return {
            **result,
            "amount": str(result["amount"]) if result["amount"] is not None else None,
            "recorded_at": serializers.DateTimeField().to_representation(result["recorded_at"])
            if result["recorded_at"]
            else None,
        }


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order lists (no nested relations)."""

    id = serializers.UUIDField(format="hex", read_only=True)
    owner_id = serializers.UUIDField(format="hex", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "owner_id",
            "status",
            "total_price",
            "is_paid",
            "is_delivered",
            "created_at",
        ]
        read_only_fields = fields
