"""Affiliate and AffiliateCommission models.

Business rules implemented:
- An affiliate is attributed to an order at checkout through its
  referral code (``code``), matched case-insensitively.
- At most one commission exists per order (one-to-one on ``order``).
- Running totals on ``Affiliate`` are incremented when a commission is
  created and never recomputed.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class CommissionStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"


class Affiliate(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="affiliates",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    code = models.CharField(max_length=64, unique=True)
    is_active = models.BooleanField(default=True)
    usage_count = models.PositiveIntegerField(default=0)
    total_sales = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    total_orders = models.PositiveIntegerField(default=0)
    total_commission = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    pending_commission = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        db_table = "affiliates"
        ordering = ["name"]

    def save(self, *args, **kwargs) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class AffiliateCommission(BaseModel):
    affiliate = models.ForeignKey(
        "affiliates.Affiliate",
        on_delete=models.PROTECT,
        related_name="commissions",
    )
    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="affiliate_commission",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    tier = models.PositiveSmallIntegerField()
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=CommissionStatus.choices,
        default=CommissionStatus.PENDING,
    )

    class Meta:
        db_table = "affiliate_commissions"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.affiliate_id} {self.amount} (tier {self.tier})"
