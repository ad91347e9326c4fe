"""Affiliate commission tiers keyed on calendar-month paid sales."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class AffiliateTier:
    tier: int
    min_sales: Decimal
    max_sales: Optional[Decimal]
    commission_rate: Decimal


AFFILIATE_TIERS: tuple[AffiliateTier, ...] = (
    AffiliateTier(1, Decimal("0"), Decimal("499.99"), Decimal("15")),
    AffiliateTier(2, Decimal("500"), Decimal("1999.99"), Decimal("17")),
    AffiliateTier(3, Decimal("2000"), Decimal("2999.99"), Decimal("20")),
    AffiliateTier(4, Decimal("3000"), None, Decimal("25")),
)


def tier_for_monthly_sales(monthly_sales: Decimal) -> AffiliateTier:
    """Pick the tier for *monthly_sales*.

    Sales falling in the cent gaps between tiers (e.g. 499.995) and
    negative totals resolve to the first tier.
    """
    for tier in reversed(AFFILIATE_TIERS):
        if monthly_sales >= tier.min_sales:
            return tier
    return AFFILIATE_TIERS[0]
