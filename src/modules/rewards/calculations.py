"""Pure rewards arithmetic.

- One point per whole dollar of subtotal.
- 100 points are worth $1.
- A single order can absorb at most ``floor(subtotal * 0.5)`` points.
"""

from __future__ import annotations

import math
from decimal import Decimal

from modules.core.money import quantize_money, to_decimal
from modules.rewards.exceptions import InvalidRedemption

POINTS_PER_DOLLAR_VALUE = 100
MAX_REDEEM_RATIO = Decimal("0.5")


def points_earned(subtotal) -> int:
    return max(math.floor(to_decimal(subtotal)), 0)


def points_value(points: int) -> Decimal:
    return quantize_money(Decimal(points) / POINTS_PER_DOLLAR_VALUE)


def max_redeemable_points(available_points: int, subtotal) -> int:
    order_cap = math.floor(to_decimal(subtotal) * MAX_REDEEM_RATIO)
    return max(min(available_points, order_cap), 0)


def validate_redemption(points: int, available_points: int, subtotal) -> None:
    """Raise ``InvalidRedemption`` unless *points* can be spent on this order."""
    if points <= 0:
        raise InvalidRedemption("Points must be greater than 0")
    if points > available_points:
        raise InvalidRedemption("Insufficient points")
    allowed = max_redeemable_points(available_points, subtotal)
    if points > allowed:
        raise InvalidRedemption(
            f"Maximum {allowed} points can be redeemed for this order"
        )
