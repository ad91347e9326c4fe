"""Post-payment side effects and their outbox dispatcher.

The reconciler never calls a side effect directly.  It writes one
``OutboxEvent`` per effect (keyed by order id and effect type) inside
its transaction, and ``OrderEffectDispatcher`` runs the matching
handler once that transaction has committed.

Every handler is safe to re-run: the commission handler checks for an
existing commission, and the points and email handlers only ever run
for an outbox row that has not been published yet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import structlog
from django.db import IntegrityError, transaction

from modules.core.models import EventStatus, OutboxEvent
from modules.orders.constants import MAX_EFFECT_ATTEMPTS, OrderEffect

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class OrderEffectHandler:
    """Base class: one handler per ``OrderEffect``."""

    effect: str = ""

    def handle(self, order: Order, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class PointsAwardHandler(OrderEffectHandler):
    effect = OrderEffect.POINTS_AWARD

    def __init__(self, rewards_service=None) -> None:
        if rewards_service is None:
            from modules.rewards.services import RewardsService

            rewards_service = RewardsService()
        self._rewards = rewards_service

    def handle(self, order: Order, payload: Dict[str, Any]) -> None:
        if not order.user_id or order.points_earned <= 0:
            return
        self._rewards.add_points(
            order.user_id,
            order.points_earned,
            order_id=order.id,
            description=f"Earned from order #{order.order_number}",
        )


class ConfirmationEmailHandler(OrderEffectHandler):
    effect = OrderEffect.CONFIRMATION_EMAIL

    def __init__(self, notifier=None) -> None:
        if notifier is None:
            from modules.notifications.emails import OrderNotifier

            notifier = OrderNotifier()
        self._notifier = notifier

    def handle(self, order: Order, payload: Dict[str, Any]) -> None:
        self._notifier.send_order_confirmation(
            order, payment_method=payload.get("payment_method")
        )


class AffiliateCommissionHandler(OrderEffectHandler):
    effect = OrderEffect.AFFILIATE_COMMISSION

    def __init__(self, affiliate_service=None) -> None:
        if affiliate_service is None:
            from modules.affiliates.services import AffiliateService

            affiliate_service = AffiliateService()
        self._affiliates = affiliate_service

    def handle(self, order: Order, payload: Dict[str, Any]) -> None:
        self._affiliates.credit_commission(order)


def default_handlers() -> Dict[str, OrderEffectHandler]:
    handlers: Iterable[OrderEffectHandler] = (
        PointsAwardHandler(),
        ConfirmationEmailHandler(),
        AffiliateCommissionHandler(),
    )
    return {handler.effect: handler for handler in handlers}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class OrderEffectDispatcher:
    """Writes effect intents to the outbox and runs them."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        handlers: Optional[Dict[str, OrderEffectHandler]] = None,
    ) -> None:
        self._order_repo = order_repository
        self._handlers = handlers if handlers is not None else default_handlers()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def enqueue(
        self,
        order: Order,
        effect: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[OutboxEvent]:
        """Record *effect* for *order*; ``None`` when it was already recorded.

        Must be called inside the caller's transaction.
        """
        try:
            with transaction.atomic():
                event = OutboxEvent.objects.create(
                    aggregate_id=str(order.id),
                    event_type=effect,
                    topic=OUTBOX_TOPIC,
                    payload=payload or {},
                )
        except IntegrityError:
            logger.info(
                "order.effect_already_enqueued",
                order_id=str(order.id),
                effect=effect,
            )
            return None
        logger.info("order.effect_enqueued", order_id=str(order.id), effect=effect)
        return event

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch_for_order(self, order_id) -> List[str]:
        """Run every unpublished effect of one order.  Returns the effects run."""
        event_ids = list(
            OutboxEvent.objects.filter(
                aggregate_id=str(order_id),
                topic=OUTBOX_TOPIC,
                status__in=[EventStatus.PENDING, EventStatus.FAILED],
                retry_count__lt=MAX_EFFECT_ATTEMPTS,
            ).values_list("id", flat=True)
        )
        return [
            event_type
            for event_type in (self.dispatch(event_id) for event_id in event_ids)
            if event_type
        ]

    def dispatch_pending(self, limit: int = 100) -> int:
        """Retry unpublished rows that still have attempts left."""
        event_ids = list(
            OutboxEvent.objects.filter(
                topic=OUTBOX_TOPIC,
                status__in=[EventStatus.PENDING, EventStatus.FAILED],
                retry_count__lt=MAX_EFFECT_ATTEMPTS,
            )
            .order_by("created_at")
            .values_list("id", flat=True)[:limit]
        )
        return sum(1 for event_id in event_ids if self.dispatch(event_id))

    def dispatch(self, event_id) -> Optional[str]:
        """Claim one outbox row and run its handler.

        Returns the effect type when the handler succeeded, ``None`` when
        the row was already published or the handler failed.  Handler
        failures are recorded on the row and never raised.
        """
        with transaction.atomic():
            event = (
                OutboxEvent.objects.select_for_update()
                .filter(
                    id=event_id,
                    status__in=[EventStatus.PENDING, EventStatus.FAILED],
                )
                .first()
            )
            if event is None:
                return None

            log = logger.bind(
                event_id=str(event.id),
                order_id=event.aggregate_id,
                effect=event.event_type,
                attempt=event.retry_count + 1,
            )

            handler = self._handlers.get(event.event_type)
            order = self._order_repo.get_by_id(event.aggregate_id)
            if handler is None or order is None:
                reason = "no handler" if handler is None else "order not found"
                log.error("order.effect_unprocessable", reason=reason)
                event.mark_as_failed(reason)
                return None

            try:
                with transaction.atomic():
                    handler.handle(order, event.payload)
            except Exception as exc:
                log.exception("order.effect_failed")
                event.mark_as_failed(str(exc))
                return None

            event.mark_as_published()
            log.info("order.effect_completed")
            return event.event_type
