"""Discount code use cases.

``quote`` is the read-only check used by the storefront while the
buyer is still editing the cart; ``redeem`` is called by checkout inside
its transaction and also bumps ``usage_count``.

Validation order matters because the first failing rule decides the
message the buyer sees:

1. empty code                 -> DiscountCodeRejected("Code is required")
2. unknown code               -> DiscountCodeNotFound
3. inactive                   -> DiscountCodeRejected
4. expired                    -> DiscountCodeRejected
5. subtotal below minimum     -> DiscountCodeRejected
6. usage_count >= usage_limit -> DiscountCodeRejected
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from modules.core.money import ZERO, quantize_money, to_decimal
from modules.discounts.exceptions import DiscountCodeNotFound, DiscountCodeRejected
from modules.discounts.models import DiscountType

if TYPE_CHECKING:
    from modules.discounts.models import DiscountCode
    from modules.discounts.repositories.interfaces import IDiscountCodeRepository

logger = structlog.get_logger(__name__)


class DiscountQuote(BaseModel):
    """Result of applying a code to a subtotal."""

    model_config = ConfigDict(frozen=True)

    code: str
    discount_amount: Decimal
    free_shipping: bool
    discount_percentage: Optional[Decimal] = None


def normalize_code(code: Optional[str]) -> str:
    return code.strip().upper() if isinstance(code, str) else ""


class DiscountService:
    """Application service for discount codes."""

    def __init__(self, discount_repository: IDiscountCodeRepository) -> None:
        self._discount_repo = discount_repository

    def quote(self, code: Optional[str], subtotal) -> DiscountQuote:
        """Validate *code* against *subtotal* without consuming it."""
        discount = self._load_valid(code, to_decimal(subtotal))
        return self._compute(discount, to_decimal(subtotal))

    def redeem(self, code: Optional[str], subtotal) -> DiscountQuote:
        """Validate, compute and count one use of *code*."""
        sub = to_decimal(subtotal)
        discount = self._load_valid(code, sub)
        quote = self._compute(discount, sub)
        self._discount_repo.increment_usage(discount.id)
        logger.info(
            "discount.redeemed",
            code=discount.code,
            discount_amount=str(quote.discount_amount),
        )
        return quote

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_valid(self, code: Optional[str], subtotal: Decimal) -> DiscountCode:
        normalized = normalize_code(code)
        if not normalized:
            raise DiscountCodeRejected("Code is required")

        discount = self._discount_repo.get_by_code(normalized)
        if discount is None:
            raise DiscountCodeNotFound("No discount code found")

        log = logger.bind(code=normalized)
        if not discount.is_active:
            log.info("discount.rejected", reason="inactive")
            raise DiscountCodeRejected("This code is no longer active")
        if discount.is_expired:
            log.info("discount.rejected", reason="expired")
            raise DiscountCodeRejected("This code has expired")
        if discount.min_order_amount is not None and subtotal < discount.min_order_amount:
            log.info("discount.rejected", reason="below_minimum")
            raise DiscountCodeRejected(
                f"Minimum order amount is ${quantize_money(discount.min_order_amount)}"
            )
        if discount.is_exhausted:
            log.info("discount.rejected", reason="usage_limit")
            raise DiscountCodeRejected("This code has reached its usage limit")
        return discount

    @staticmethod
    def _compute(discount: DiscountCode, subtotal: Decimal) -> DiscountQuote:
        percentage: Optional[Decimal] = None
        if discount.discount_type == DiscountType.PERCENTAGE:
            percentage = discount.discount_amount
            amount = subtotal * discount.discount_amount / Decimal("100")
            if discount.max_discount is not None and amount > discount.max_discount:
                amount = discount.max_discount
        else:
            amount = min(discount.discount_amount, subtotal)

        return DiscountQuote(
            code=discount.code,
            discount_amount=max(quantize_money(amount), ZERO),
            free_shipping=discount.free_shipping,
            discount_percentage=percentage,
        )
