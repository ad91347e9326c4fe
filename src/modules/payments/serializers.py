"""Payment DRF serializers (partner checkout and provider callbacks)."""

from __future__ import annotations

from rest_framework import serializers

from modules.payments.events import BarterPayCallback
from modules.payments.services import (
    PartnerCheckoutDTO,
    PartnerLineItem,
    PartnerProduct,
)


class PartnerLineItemSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, default="Item")
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)
    amount = serializers.IntegerField(min_value=0)


class PartnerProductSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    quantity = serializers.IntegerField(required=False, default=1, min_value=1)
    unitPrice = serializers.DecimalField(  # noqa: N815
        max_digits=10, decimal_places=2, required=False, default=0, min_value=0
    )


class PartnerCheckoutSerializer(serializers.Serializer):
    """``line_items`` in cents, or ``products`` with a dollar ``amount``."""

    line_items = PartnerLineItemSerializer(many=True, required=False)
    products = PartnerProductSerializer(many=True, required=False)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    customer_email = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def to_dto(self) -> PartnerCheckoutDTO:
        data = self.validated_data
        return PartnerCheckoutDTO(
            line_items=[PartnerLineItem(**item) for item in data.get("line_items", [])],
            products=[PartnerProduct(**product) for product in data.get("products", [])],
            amount=data.get("amount"),
            customer_email=data.get("customer_email"),
        )


class BarterPayCallbackSerializer(serializers.Serializer):
    data = serializers.DictField()
    signature = serializers.CharField(required=False, allow_blank=True, default="")

    def to_callback(self) -> BarterPayCallback:
        return BarterPayCallback(**self.validated_data)
