"""Payment confirmation: the single PENDING -> PAID transition.

Every way an order can be found paid (Stripe webhook, BarterPay callback
or poll, NOWPayments IPN or poll, Green draft approval, the Stripe
redirect fallback, an admin) ends up in
``PaymentConfirmationService.confirm_payment``.

Steps:
1. Lock the order row; return ``False`` if it is already PAID.
2. Set ``payment_status=PAID`` / ``status=PROCESSING`` and append history.
3. Decrement stock for every non-backordered item, one savepoint each.
4. Enqueue points, confirmation email and affiliate commission in the
   outbox, all in the same transaction.
5. After commit, dispatch the enqueued effects.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog
from django.db import transaction

from modules.orders.constants import (
    OrderEffect,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.exceptions import OrderNotFound

if TYPE_CHECKING:
    from modules.catalog.repositories.interfaces import IVariantRepository
    from modules.orders.effects import OrderEffectDispatcher
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


def decrement_item_stock(order: Order, variant_repository: IVariantRepository) -> int:
    """Take stock for every non-backordered item; returns the items decremented.

    A failing item is logged and skipped so one bad variant never blocks
    the rest of the order.
    """
    decremented = 0
    for item in order.items.all():
        if item.is_backorder or not item.variant_id:
            continue
        try:
            with transaction.atomic():
                if variant_repository.decrement_stock(item.variant_id, item.quantity):
                    decremented += 1
                else:
                    logger.warning(
                        "order.stock_variant_missing",
                        order_id=str(order.id),
                        variant_id=str(item.variant_id),
                    )
        except Exception:
            logger.exception(
                "order.stock_decrement_failed",
                order_id=str(order.id),
                variant_id=str(item.variant_id),
            )
    return decremented


def restore_item_stock(order: Order, variant_repository: IVariantRepository) -> int:
    """Mirror of ``decrement_item_stock`` used when a paid order is cancelled."""
    restored = 0
    for item in order.items.all():
        if item.is_backorder or not item.variant_id:
            continue
        try:
            with transaction.atomic():
                if variant_repository.restore_stock(item.variant_id, item.quantity):
                    restored += 1
        except Exception:
            logger.exception(
                "order.stock_restore_failed",
                order_id=str(order.id),
                variant_id=str(item.variant_id),
            )
    return restored


class PaymentConfirmationService:
    """Application service owning the payment confirmation protocol.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        variant_repository: IVariantRepository,
        effect_dispatcher: OrderEffectDispatcher,
    ) -> None:
        self._order_repo = order_repository
        self._variant_repo = variant_repository
        self._effects = effect_dispatcher

    def confirm_payment(
        self,
        order_id,
        note: str,
        payment_method: Optional[str] = None,
    ) -> bool:
        """Mark *order_id* paid exactly once.

        Returns ``True`` when this call performed the transition and
        ``False`` when the order was already paid.  Side-effect failures
        never propagate.

        Raises:
            OrderNotFound: order does not exist.
        """
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")

            log = logger.bind(order_id=str(order.id), order_number=order.order_number)
            if order.payment_status == PaymentStatus.PAID:
                log.info("order.payment_already_confirmed")
                return False

            old_status = order.status
            self._order_repo.update_fields(
                order,
                payment_status=PaymentStatus.PAID,
                status=OrderStatus.PROCESSING,
            )
            self._order_repo.add_history(
                order.id,
                new_status=OrderStatus.PROCESSING,
                note=note,
                old_status=old_status,
            )

            decremented = decrement_item_stock(order, self._variant_repo)
            self._enqueue_effects(order, payment_method)

            order_pk = order.id
            transaction.on_commit(lambda: self._effects.dispatch_for_order(order_pk))

        log.info(
            "order.payment_confirmed",
            note=note,
            items_decremented=decremented,
        )
        return True

    def confirm_crypto_payment(self, order_id, note: str) -> bool:
        return self.confirm_payment(order_id, note, payment_method=PaymentMethod.CRYPTO)

    def confirm_credit_card_payment(self, order_id, note: str) -> bool:
        return self.confirm_payment(
            order_id, note, payment_method=PaymentMethod.CREDIT_CARD
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enqueue_effects(self, order: Order, payment_method: Optional[str]) -> None:
        if order.user_id and order.points_earned > 0:
            self._effects.enqueue(
                order,
                OrderEffect.POINTS_AWARD,
                {"points": order.points_earned},
            )

        if order.customer_email:
            self._effects.enqueue(
                order,
                OrderEffect.CONFIRMATION_EMAIL,
                {"payment_method": payment_method or order.payment_method},
            )

        if order.affiliate_id and order.total > 0:
            self._effects.enqueue(
                order,
                OrderEffect.AFFILIATE_COMMISSION,
                {"affiliate_id": str(order.affiliate_id)},
            )


def build_confirmation_service() -> PaymentConfirmationService:
    """Wire the service with its Django ORM collaborators."""
    from modules.catalog.repositories import VariantDjangoRepository
    from modules.orders.effects import OrderEffectDispatcher
    from modules.orders.repositories import OrderDjangoRepository

    order_repo = OrderDjangoRepository()
    return PaymentConfirmationService(
        order_repository=order_repo,
        variant_repository=VariantDjangoRepository(),
        effect_dispatcher=OrderEffectDispatcher(order_repo),
    )
