"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items, locked reads for the payment
reconciler, provider-reference lookups and status history tracking.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(
        self,
        data: Dict[str, Any],
        items: List[Dict[str, Any]],
        note: str = "Order created",
    ) -> Order:
        """Create an order, its items and the initial history row atomically.

        ``data`` holds the Order field values; each entry of ``items``
        carries ``product_id``, ``variant_id``, ``quantity``, ``price`` and
        ``is_backorder``.  *note* becomes the first history entry.
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock, items prefetched."""

    @abstractmethod
    def get_by_order_number(self, order_number: str) -> Optional[Order]:
        """Retrieve an order by its human-readable number."""

    @abstractmethod
    def get_by_reference(self, field: str, value: str) -> Optional[Order]:
        """Retrieve an order by a stored provider reference column."""

    @abstractmethod
    def list_awaiting_payment(self, payment_method: str) -> List[Order]:
        """Orders in *payment_method* whose payment is still PENDING."""

    @abstractmethod
    def update_fields(self, order: Order, **values: Any) -> Order:
        """Set *values* on *order* and persist only those columns."""

    @abstractmethod
    def add_history(
        self,
        order_id,
        new_status: str,
        note: str = "",
        old_status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        """Append a row to the order's audit trail."""
