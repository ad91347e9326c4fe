"""Discount code model.

Business rules implemented:
- ``code`` is stored uppercase and matched case-insensitively by
  normalising the input (strip + upper).
- ``usage_count`` reaching ``usage_limit`` exhausts the code.
- PERCENTAGE discounts may be capped by ``max_discount``; FIXED
  discounts never exceed the subtotal.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel


class DiscountType(models.TextChoices):
    PERCENTAGE = "PERCENTAGE", "Percentage"
    FIXED = "FIXED", "Fixed amount"


class DiscountCode(BaseModel):
    """Promotional code redeemable at checkout."""

    code = models.CharField(max_length=64, unique=True)
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE,
    )
    discount_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    max_discount = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    min_order_amount = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    free_shipping = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "discount_codes"
        ordering = ["code"]

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at < timezone.now()

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def save(self, *args, **kwargs) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code
