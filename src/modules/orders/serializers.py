"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.

Buyer name, email and address lines are accepted loosely here so the
buyer sees the messages from ``modules.customers.validation`` and
``CheckoutService`` rather than generic field errors.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.dtos import (
    CheckoutDTO,
    CheckoutItemDTO,
    ShippingInfoDTO,
    StatusChangeDTO,
)
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


def _loose_text(**kwargs):
    return serializers.CharField(
        required=False, allow_blank=True, allow_null=True, trim_whitespace=False, **kwargs
    )


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(required=False, allow_null=True)
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class ShippingInfoSerializer(serializers.Serializer):
    name = _loose_text()
    email = _loose_text()
    street = _loose_text(default="")
    apartment = _loose_text(default="")
    city = _loose_text(default="")
    state = _loose_text(default="")
    zip_code = _loose_text(default="")
    country = _loose_text(default="US")
    phone = _loose_text(default="")


class CheckoutSerializer(serializers.Serializer):
    """Body of every ``/api/orders/create-<method>`` endpoint."""

    items = CheckoutItemSerializer(many=True, allow_empty=False)
    shipping_info = ShippingInfoSerializer()
    shipping_cost = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        required=False,
        default=Decimal("0.00"),
        min_value=Decimal("0.00"),
    )
    shipping_method = serializers.CharField(required=False, allow_blank=True, default="")
    discount_code = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    affiliate_ref = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    sms_opt_in = serializers.BooleanField(required=False, default=False)
    payor_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    pay_currency = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_dto(self, user=None) -> CheckoutDTO:
        data = self.validated_data
        shipping = {
            key: ("" if value is None and key not in ("name", "email") else value)
            for key, value in data["shipping_info"].items()
        }
        authenticated = user is not None and getattr(user, "is_authenticated", False)
        return CheckoutDTO(
            items=[CheckoutItemDTO(**item) for item in data["items"]],
            shipping=ShippingInfoDTO(**shipping),
            shipping_cost=data["shipping_cost"],
            shipping_method=data.get("shipping_method") or "",
            discount_code=data.get("discount_code"),
            affiliate_ref=data.get("affiliate_ref"),
            sms_opt_in=data.get("sms_opt_in", False),
            user_id=user.pk if authenticated else None,
            account_email=(user.email or None) if authenticated else None,
            payor_id=data.get("payor_id"),
            pay_currency=data.get("pay_currency"),
        )


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField()
    tracking_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    cancellation_reason = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )
    send_email = serializers.BooleanField(required=False, default=True)

    def to_dto(self) -> StatusChangeDTO:
        return StatusChangeDTO(**self.validated_data)


class OrderLookupSerializer(serializers.Serializer):
    order_number = serializers.CharField()
    email = serializers.CharField(required=False, allow_blank=True, default="")


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with product snapshot."""

    product_name = serializers.CharField(source="product.name", read_only=True)
    size = serializers.CharField(source="variant.size", read_only=True, default="")

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "variant_id",
            "product_name",
            "size",
            "quantity",
            "price",
            "is_backorder",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = ["id", "old_status", "new_status", "note", "created_at"]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the admin order list (no nested relations)."""

    email = serializers.CharField(source="customer_email", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "email",
            "status",
            "payment_status",
            "payment_method",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full read serializer with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_status",
            "payment_method",
            "subtotal",
            "shipping_insurance",
            "shipping_cost",
            "discount_amount",
            "payment_method_discount",
            "total",
            "points_earned",
            "tracking_number",
            "shipped_at",
            "delivered_at",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields
