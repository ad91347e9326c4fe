"""Discount repositories package."""

from modules.discounts.repositories.django_repository import (
    DiscountCodeDjangoRepository,
)
from modules.discounts.repositories.interfaces import IDiscountCodeRepository

__all__ = ["DiscountCodeDjangoRepository", "IDiscountCodeRepository"]
