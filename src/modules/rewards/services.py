"""Rewards points use cases."""

from __future__ import annotations

import structlog
from django.db import transaction
from django.db.models import F

from modules.rewards.models import PointsHistory, PointsKind, RewardsAccount

logger = structlog.get_logger(__name__)


class RewardsService:
    """Credits the points balance together with its ledger row."""

    def balance(self, user_id: int) -> int:
        account = RewardsAccount.objects.filter(user_id=user_id).first()
        return account.points if account else 0

    @transaction.atomic
    def add_points(
        self,
        user_id: int,
        points: int,
        order_id=None,
        description: str = "",
    ) -> int:
        """Credit *points* and record an EARNED entry. Returns the new balance."""
        if points <= 0:
            return self.balance(user_id)

        account, _ = RewardsAccount.objects.select_for_update().get_or_create(
            user_id=user_id
        )
        RewardsAccount.objects.filter(pk=account.pk).update(
            points=F("points") + points
        )
        PointsHistory.objects.create(
            user_id=user_id,
            order_id=order_id,
            points=points,
            kind=PointsKind.EARNED,
            description=description,
        )
        account.refresh_from_db(fields=["points"])
        logger.info(
            "rewards.points_added",
            user_id=user_id,
            points=points,
            order_id=str(order_id) if order_id else None,
            balance=account.points,
        )
        return account.points
