"""Variant repository interface.

Extends ``IRepository[ProductVariant]`` with the stock-ledger
operations used by checkout and the payment reconciler.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.models import ProductVariant


class IVariantRepository(IRepository["ProductVariant"]):
    """Repository contract for product variants and their stock."""

    @abstractmethod
    def get_many(self, ids: Iterable[UUID]) -> Dict[UUID, ProductVariant]:
        """Return active variants keyed by id (unknown ids are omitted)."""

    @abstractmethod
    def decrement_stock(self, variant_id: UUID, quantity: int) -> bool:
        """Atomically subtract *quantity*; ``False`` when the variant is missing."""

    @abstractmethod
    def restore_stock(self, variant_id: UUID, quantity: int) -> bool:
        """Atomically add *quantity* back; ``False`` when the variant is missing."""
