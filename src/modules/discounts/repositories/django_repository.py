"""Django ORM implementation of the discount code repository."""

from __future__ import annotations

from typing import Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F

from modules.discounts.models import DiscountCode
from modules.discounts.repositories.interfaces import IDiscountCodeRepository

logger = structlog.get_logger(__name__)


class DiscountCodeDjangoRepository(IDiscountCodeRepository):
    """Concrete discount code repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[DiscountCode]:
        try:
            return DiscountCode.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_code(self, code: str) -> Optional[DiscountCode]:
        return DiscountCode.objects.filter(code=code).first()

    def save(self, entity: DiscountCode) -> DiscountCode:
        entity.save()
        return entity

    def increment_usage(self, discount_id) -> None:
        DiscountCode.objects.filter(id=discount_id).update(
            usage_count=F("usage_count") + 1
        )
        logger.info("discount.usage_incremented", discount_id=str(discount_id))
