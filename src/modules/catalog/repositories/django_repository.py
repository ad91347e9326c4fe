"""Django ORM implementation of the variant repository.

Stock changes use ``F()`` expressions so concurrent decrements for the
same variant never lose an update.  Missing rows are reported as
``False``/``None`` and the caller decides whether that is an error.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F

from modules.catalog.models import ProductVariant
from modules.catalog.repositories.interfaces import IVariantRepository

logger = structlog.get_logger(__name__)


class VariantDjangoRepository(IVariantRepository):
    """Concrete variant repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[ProductVariant]:
        """Return ``None`` for non-existent or invalid IDs."""
        try:
            return ProductVariant.objects.select_related("product").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[UUID]) -> Dict[UUID, ProductVariant]:
        queryset = ProductVariant.objects.select_related("product").filter(
            id__in=list(ids),
            is_active=True,
            product__is_active=True,
        )
        return {variant.id: variant for variant in queryset}

    def save(self, entity: ProductVariant) -> ProductVariant:
        entity.save()
        return entity

    # ------------------------------------------------------------------
    # Stock ledger
    # ------------------------------------------------------------------

    def decrement_stock(self, variant_id: UUID, quantity: int) -> bool:
        updated = ProductVariant.objects.filter(id=variant_id).update(
            stock_count=F("stock_count") - quantity
        )
        if updated:
            logger.info(
                "variant.stock_decremented",
                variant_id=str(variant_id),
                quantity=quantity,
            )
        return bool(updated)

    def restore_stock(self, variant_id: UUID, quantity: int) -> bool:
        updated = ProductVariant.objects.filter(id=variant_id).update(
            stock_count=F("stock_count") + quantity
        )
        if updated:
            logger.info(
                "variant.stock_restored",
                variant_id=str(variant_id),
                quantity=quantity,
            )
        return bool(updated)
