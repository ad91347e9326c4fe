"""Discount code repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.discounts.models import DiscountCode


class IDiscountCodeRepository(IRepository["DiscountCode"]):
    """Repository contract for discount codes."""

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[DiscountCode]:
        """Look up a code that is already normalised to uppercase."""

    @abstractmethod
    def increment_usage(self, discount_id) -> None:
        """Atomically add one to ``usage_count``."""
