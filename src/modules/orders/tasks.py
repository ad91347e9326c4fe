"""Periodic order tasks (scheduled by Celery beat)."""

import structlog
from celery import shared_task

from modules.orders.constants import PaymentMethod
from modules.orders.effects import OrderEffectDispatcher
from modules.orders.repositories import OrderDjangoRepository
from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured

logger = structlog.get_logger(__name__)


@shared_task(name="orders.dispatch_pending_effects")
def dispatch_pending_effects(limit: int = 100):
    """Retry outbox effects left PENDING or FAILED by a crashed dispatch."""
    dispatcher = OrderEffectDispatcher(OrderDjangoRepository())
    dispatched = dispatcher.dispatch_pending(limit=limit)
    logger.info("orders.pending_effects_dispatched", count=dispatched)
    return {"dispatched": dispatched}


@shared_task(name="orders.check_pending_crypto_payments")
def check_pending_crypto_payments():
    """Poll NOWPayments for crypto orders still awaiting payment."""
    from modules.payments.providers import NOWPaymentsClient
    from modules.payments.services import PaymentStatusService, build_event_service

    client = NOWPaymentsClient.from_settings()
    service = PaymentStatusService(build_event_service())
    outcomes = {}
    for order in OrderDjangoRepository().list_awaiting_payment(PaymentMethod.CRYPTO):
        if not order.nowpayments_payment_id:
            continue
        try:
            result = service.poll_nowpayments(client, order.nowpayments_payment_id)
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.warning(
                "orders.crypto_poll_failed",
                order_id=str(order.id),
                error=str(exc),
            )
            continue
        outcomes[order.order_number] = result["outcome"]
    logger.info("orders.crypto_poll_finished", checked=len(outcomes))
    return outcomes
