"""Rewards ledger models.

- ``RewardsAccount`` holds the spendable balance, one row per user.
- ``PointsHistory`` is the append-only ledger explaining the balance.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class PointsKind(models.TextChoices):
    EARNED = "EARNED", "Earned"
    REDEEMED = "REDEEMED", "Redeemed"


class RewardsAccount(BaseModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="rewards_account",
    )
    points = models.IntegerField(default=0)

    class Meta:
        db_table = "rewards_accounts"

    def __str__(self) -> str:
        return f"{self.user_id}: {self.points} pts"


class PointsHistory(BaseModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="points_history",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="points_history",
    )
    points = models.IntegerField()
    kind = models.CharField(max_length=20, choices=PointsKind.choices)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "points_history"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} {self.points} ({self.user_id})"
