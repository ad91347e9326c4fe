"""Address repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Address


class IAddressRepository(IRepository["Address"]):
    """Repository contract for shipping addresses."""

    @abstractmethod
    def find_or_create(self, user_id: Optional[int], data: Dict[str, Any]) -> Address:
        """Reuse a registered user's matching address or create a new one.

        ``data`` carries ``name``, ``street``, ``apartment``, ``city``,
        ``state``, ``zip_code``, ``country`` and ``phone``.  Matching is on
        street, city and zip code for the same user; guests
        (``user_id is None``) always get a new row.
        """
