"""Decimal helpers for monetary values.

Amounts are ``Decimal`` end to end; floats only appear at the edges
(provider payloads) and are converted through ``str`` first.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

MONEY_PRECISION = Decimal("0.01")
ZERO = Decimal("0.00")

Numeric = Union[str, int, float, Decimal, None]


def to_decimal(value: Numeric) -> Decimal:
    """Convert *value* to ``Decimal``; ``None`` and garbage become zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def quantize_money(value: Numeric) -> Decimal:
    """Round half-up to cents."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_cents(value: Numeric) -> int:
    """Dollars to integer cents (Stripe ``unit_amount``)."""
    return int((to_decimal(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return quantize_money(Decimal(cents) / 100)
