"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
Creation is wrapped in ``transaction.atomic()`` so the Order aggregate
(Order + OrderItems + first history row) is persisted atomically.

Concurrency control on payment confirmation uses ``select_for_update()``
on the order row.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

REFERENCE_FIELDS = frozenset(
    {
        "id",
        "order_number",
        "stripe_session_id",
        "barterpay_transaction_index",
        "nowpayments_payment_id",
    }
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(
        self,
        data: Dict[str, Any],
        items: List[Dict[str, Any]],
        note: str = "Order created",
    ) -> Order:
        order = Order(**data)
        order.save()

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=item["product_id"],
                    variant_id=item["variant_id"],
                    quantity=item["quantity"],
                    price=item["price"],
                    is_backorder=item.get("is_backorder", False),
                )
                for item in items
            ]
        )
        self.add_history(
            order.id,
            new_status=OrderStatus.PENDING,
            note=note,
        )

        logger.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            payment_method=order.payment_method,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_related("user", "shipping_address")
                .prefetch_related("items__product", "items__variant", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Only the order row is locked (``of=("self",)``); nullable outer
        joins cannot be locked on PostgreSQL.
        """
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_order_number(self, order_number: str) -> Optional[Order]:
        return (
            Order.objects.select_related("user")
            .filter(order_number=order_number)
            .first()
        )

    def get_by_reference(self, field: str, value: str) -> Optional[Order]:
        if field not in REFERENCE_FIELDS:
            raise ValueError(f"Unsupported order reference field: {field}")
        if not value:
            return None
        try:
            return Order.objects.filter(**{field: value}).first()
        except (ValueError, ValidationError):
            return None

    def list_awaiting_payment(self, payment_method: str) -> List[Order]:
        return list(
            Order.objects.filter(
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
            ).order_by("created_at")
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        entity.save()
        return entity

    def update_fields(self, order: Order, **values: Any) -> Order:
        for field, value in values.items():
            setattr(order, field, value)
        order.save(update_fields=[*values.keys(), "updated_at"])
        return order

    def add_history(
        self,
        order_id,
        new_status: str,
        note: str = "",
        old_status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            note=note,
            user_id=user_id,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history
