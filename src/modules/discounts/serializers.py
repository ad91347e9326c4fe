"""Discount serializers (HTTP input validation only)."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers


class ValidateDiscountSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True, default="")
    subtotal = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        required=False,
        default=Decimal("0.00"),
        min_value=Decimal("0.00"),
    )
