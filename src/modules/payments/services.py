"""Payment use cases.

- ``PaymentEventService``: applies a normalized ``PaymentEvent`` to its
  order.  Confirmations go through the reconciler; failures never
  overwrite a PAID order.
- ``PaymentCheckoutService``: creates a pending order and starts the
  payment with the method's adapter.
- ``PaymentStatusService``: provider webhooks and status polls.
- ``PartnerCheckoutService``: the partner storefront's Stripe checkout
  and its success redirect.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import urlencode

import structlog
from django.db import transaction
from pydantic import BaseModel, ConfigDict, Field

from modules.core.money import ZERO, from_cents, quantize_money, to_cents
from modules.orders.constants import (
    MINIMUM_CHECKOUT_CENTS,
    SHIPPING_INSURANCE,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.exceptions import InvalidCheckout
from modules.payments.events import (
    BarterPayCallback,
    NOWPaymentsIPN,
    PaymentConfirmed,
    PaymentFailed,
    StripeEvent,
    event_for_status,
)
from modules.payments.exceptions import (
    InvalidSignature,
    PaymentProviderError,
    ProviderNotConfigured,
)
from modules.payments.providers.barterpay import (
    map_barterpay_status,
    verify_barterpay_signature,
)
from modules.payments.providers.nowpayments import (
    map_nowpayments_status,
    verify_nowpayments_signature,
)
from modules.payments.providers.stripe_gateway import line_item

if TYPE_CHECKING:
    from modules.notifications.emails import OrderNotifier
    from modules.orders.confirmation import PaymentConfirmationService
    from modules.orders.dtos import CheckoutDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.services import CheckoutService
    from modules.payments.adapters import PaymentAdapter, PaymentStart
    from modules.payments.events import PaymentEvent
    from modules.payments.providers import (
        BarterPayClient,
        NOWPaymentsClient,
        StripeGateway,
    )

logger = structlog.get_logger(__name__)

STRIPE_PAID_EVENTS = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)
STRIPE_FAILED_EVENT = "checkout.session.async_payment_failed"
PARTNER_ORDER_NOTE = "Order created via Website A dynamic checkout. Awaiting Stripe payment."


def _status_note(provider: str, status: str, raw_status: str) -> str:
    verb = "confirmed" if status == PaymentStatus.PAID else status.lower()
    return f"Payment {verb} via {provider} ({raw_status})"


class EventOutcome:
    CONFIRMED = "confirmed"
    ALREADY_PAID = "already_paid"
    FAILED = "failed"
    PENDING = "pending"
    NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Event application
# ---------------------------------------------------------------------------


class PaymentEventService:
    """Applies payment events; the only writer of ``payment_status`` outside checkout."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        confirmation_service: PaymentConfirmationService,
    ) -> None:
        self._order_repo = order_repository
        self._confirmation = confirmation_service

    def apply(self, event: PaymentEvent) -> str:
        log = logger.bind(
            kind=event.kind,
            reference=event.reference,
            reference_type=event.reference_type,
            source=event.source,
        )
        order = self._order_repo.get_by_reference(event.reference_type, event.reference)
        if order is None:
            log.warning("payment.order_not_found")
            return EventOutcome.NOT_FOUND

        if isinstance(event, PaymentConfirmed):
            performed = self._confirmation.confirm_payment(
                order.id, event.note, payment_method=event.payment_method
            )
            return EventOutcome.CONFIRMED if performed else EventOutcome.ALREADY_PAID

        if isinstance(event, PaymentFailed):
            self._mark_failed(order, event.note)
            return EventOutcome.FAILED

        log.info("payment.still_pending", order_id=str(order.id))
        return EventOutcome.PENDING

    def _mark_failed(self, order: Order, note: str) -> None:
        with transaction.atomic():
            locked = self._order_repo.get_for_update(str(order.id))
            if locked is None or locked.payment_status != PaymentStatus.PENDING:
                logger.info(
                    "payment.failure_ignored",
                    order_id=str(order.id),
                    payment_status=locked.payment_status if locked else None,
                )
                return
            self._order_repo.update_fields(locked, payment_status=PaymentStatus.FAILED)
            self._order_repo.add_history(
                locked.id,
                new_status=locked.status,
                note=note or "Payment failed",
                old_status=locked.status,
            )
        order.payment_status = PaymentStatus.FAILED
        logger.warning("order.payment_failed", order_id=str(order.id), note=note)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class CheckoutOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    order: Any
    start: Any


class PaymentCheckoutService:
    """Pending order + provider start, with failure bookkeeping."""

    def __init__(
        self,
        checkout_service: CheckoutService,
        event_service: PaymentEventService,
        order_repository: IOrderRepository,
        notifier: OrderNotifier,
    ) -> None:
        self._checkout = checkout_service
        self._events = event_service
        self._order_repo = order_repository
        self._notifier = notifier

    def checkout(self, dto: CheckoutDTO, adapter: PaymentAdapter) -> CheckoutOutcome:
        """Create the order and hand it to *adapter*.

        Raises:
            GuestInfoInvalid / InvalidCheckout / DiscountCodeNotFound /
                DiscountCodeRejected: nothing was written.
            PaymentProviderError: the order exists and is now FAILED.
        """
        adapter.validate(dto)
        order = self._checkout.create_pending_order(
            dto, adapter.payment_method, extra_fields=adapter.initial_fields(dto)
        )
        log = logger.bind(
            order_id=str(order.id),
            order_number=order.order_number,
            payment_method=adapter.payment_method,
        )

        try:
            start = adapter.start(order, dto)
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            log.error("payment.provider_failed", error=str(exc))
            self._events.apply(
                PaymentFailed(
                    reference=str(order.id),
                    note=f"Payment provider error ({adapter.payment_method})",
                    source=adapter.payment_method,
                )
            )
            raise PaymentProviderError(str(exc)) from exc

        if start.order_fields:
            self._order_repo.update_fields(order, **start.order_fields)
        if start.confirmed:
            self._events.apply(
                PaymentConfirmed(
                    reference=str(order.id),
                    note=start.confirmation_note,
                    payment_method=adapter.payment_method,
                    source=adapter.payment_method,
                )
            )

        order = self._order_repo.get_by_id(str(order.id))
        self._notify(order, start)
        log.info("payment.checkout_started", confirmed=start.confirmed)
        return CheckoutOutcome(order=order, start=start)

    def _notify(self, order: Order, start: PaymentStart) -> None:
        if start.instructions:
            try:
                self._notifier.send_payment_instructions(order, start.instructions)
            except Exception:
                logger.exception("email.payment_instructions_failed", order_id=str(order.id))
        try:
            self._notifier.send_support_notification(order)
        except Exception:
            logger.exception("email.support_notification_failed", order_id=str(order.id))


# ---------------------------------------------------------------------------
# Webhooks and polling
# ---------------------------------------------------------------------------


class PaymentStatusService:
    """Turns provider notifications and status polls into payment events."""

    def __init__(self, event_service: PaymentEventService) -> None:
        self._events = event_service

    # Stripe ---------------------------------------------------------------

    def handle_stripe_event(self, gateway: StripeGateway, payload: bytes, signature: Optional[str]) -> str:
        """Verify and apply a Stripe webhook.

        Raises:
            ProviderNotConfigured: webhook secret missing.
            InvalidSignature: header missing or not matching.
        """
        gateway.verify_webhook(payload, signature)
        event = StripeEvent.model_validate_json(payload)
        session = event.data.object
        log = logger.bind(stripe_event_id=event.id, stripe_event_type=event.type)

        if event.type in STRIPE_PAID_EVENTS:
            if event.type == "checkout.session.completed" and session.payment_status != "paid":
                log.info("stripe.session_unpaid", payment_status=session.payment_status)
                return EventOutcome.PENDING
            if not session.client_reference_id:
                log.warning("stripe.missing_reference")
                return EventOutcome.NOT_FOUND
            return self._events.apply(
                PaymentConfirmed(
                    reference=session.client_reference_id,
                    note=f"Payment confirmed via Stripe ({event.type})",
                    payment_method=PaymentMethod.CREDIT_CARD,
                    source="stripe",
                )
            )

        if event.type == STRIPE_FAILED_EVENT and session.client_reference_id:
            return self._events.apply(
                PaymentFailed(
                    reference=session.client_reference_id,
                    note=f"Payment failed via Stripe ({event.type})",
                    source="stripe",
                )
            )

        log.info("stripe.event_ignored")
        return EventOutcome.PENDING

    # BarterPay ------------------------------------------------------------

    def handle_barterpay_callback(self, callback: BarterPayCallback, api_key: str) -> str:
        if not verify_barterpay_signature(callback.data, callback.signature, api_key):
            logger.warning("barterpay.callback_rejected")
            raise InvalidSignature("Invalid signature")

        data = callback.parsed()
        status = map_barterpay_status(data.TransactionStatus)
        if data.ExternalTransactionId:
            reference, reference_type = data.ExternalTransactionId, "order_number"
        else:
            reference, reference_type = data.TransactionIndex, "barterpay_transaction_index"
        return self._events.apply(
            event_for_status(
                status,
                reference=reference,
                reference_type=reference_type,
                note=_status_note("BarterPay", status, data.TransactionStatus),
                source="barterpay",
            )
        )

    def poll_barterpay(self, client: BarterPayClient, transaction_index: str) -> Dict[str, Any]:
        transaction_status = client.check_transaction_status(transaction_index)
        status = map_barterpay_status(transaction_status.transaction_status)
        outcome = self._events.apply(
            event_for_status(
                status,
                reference=transaction_index,
                reference_type="barterpay_transaction_index",
                note=_status_note(
                    "BarterPay status check", status, transaction_status.transaction_status
                ),
                source="barterpay",
            )
        )
        return {
            "transaction_index": transaction_index,
            "transaction_status": transaction_status.transaction_status,
            "payment_status": status,
            "outcome": outcome,
        }

    # NOWPayments ----------------------------------------------------------

    def handle_nowpayments_ipn(
        self, body: Dict[str, Any], signature: Optional[str], ipn_secret: str
    ) -> str:
        if not verify_nowpayments_signature(body, signature, ipn_secret):
            logger.warning("nowpayments.ipn_rejected")
            raise InvalidSignature("Invalid signature")

        ipn = NOWPaymentsIPN.model_validate(body)
        return self._apply_nowpayments(ipn.payment_id, ipn.payment_status, source="nowpayments_ipn")

    def poll_nowpayments(self, client: NOWPaymentsClient, payment_id: str) -> Dict[str, Any]:
        payment = client.get_payment(payment_id)
        outcome = self._apply_nowpayments(
            payment.payment_id, payment.payment_status, source="nowpayments_poll"
        )
        return {
            "payment_id": payment.payment_id,
            "payment_status": payment.payment_status,
            "status": map_nowpayments_status(payment.payment_status),
            "outcome": outcome,
        }

    def _apply_nowpayments(self, payment_id: str, provider_status: str, source: str) -> str:
        status = map_nowpayments_status(provider_status)
        return self._events.apply(
            event_for_status(
                status,
                reference=payment_id,
                reference_type="nowpayments_payment_id",
                note=_status_note("NOWPayments", status, provider_status),
                source=source,
                payment_method=PaymentMethod.CRYPTO,
            )
        )


# ---------------------------------------------------------------------------
# Partner checkout
# ---------------------------------------------------------------------------


class PartnerLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Item"
    quantity: int = Field(default=1, ge=1)
    amount: int = Field(ge=0)


class PartnerProduct(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(default=ZERO, alias="unitPrice")


class PartnerCheckoutDTO(BaseModel):
    """Partner request: ``line_items`` in cents, or ``products`` + ``amount`` in dollars."""

    model_config = ConfigDict(frozen=True)

    line_items: List[PartnerLineItem] = Field(default_factory=list)
    products: List[PartnerProduct] = Field(default_factory=list)
    amount: Optional[Decimal] = None
    customer_email: Optional[str] = None

    def normalized(self) -> tuple[List[PartnerLineItem], int]:
        """Return ``(line items in cents, total cents)``.

        Raises:
            InvalidCheckout: neither accepted shape was sent.
        """
        if self.line_items:
            total = (
                int(self.amount)
                if self.amount is not None
                else sum(item.amount * item.quantity for item in self.line_items)
            )
            return list(self.line_items), total
        if self.products and self.amount is not None:
            items = [
                PartnerLineItem(
                    name=product.name or "Item",
                    quantity=product.quantity,
                    amount=to_cents(product.unit_price),
                )
                for product in self.products
            ]
            return items, to_cents(self.amount)
        raise InvalidCheckout(
            "Invalid request: provide line_items or (products + amount in dollars)"
        )


class PartnerCheckoutService:
    """Stripe checkout on behalf of the partner storefront."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        gateway: StripeGateway,
        event_service: PaymentEventService,
        site_url: str,
        return_url: str,
    ) -> None:
        self._order_repo = order_repository
        self._gateway = gateway
        self._events = event_service
        self._site_url = site_url.rstrip("/")
        self._return_url = return_url

    def create_session(self, dto: PartnerCheckoutDTO) -> Dict[str, Any]:
        line_items, total_cents = dto.normalized()
        if total_cents < MINIMUM_CHECKOUT_CENTS:
            raise InvalidCheckout("Invalid request: amount must be at least 50 cents")

        total = from_cents(total_cents)
        email = (dto.customer_email or "").strip()
        order = self._order_repo.create(
            {
                "payment_method": PaymentMethod.CREDIT_CARD,
                "email": email if "@" in email else "",
                "subtotal": max(quantize_money(total - SHIPPING_INSURANCE), ZERO),
                "shipping_insurance": SHIPPING_INSURANCE,
                "shipping_cost": ZERO,
                "total": total,
                "points_earned": 0,
            },
            [],
            note=PARTNER_ORDER_NOTE,
        )

        try:
            session = self._gateway.create_checkout_session(
                line_items=[
                    line_item(item.name, item.amount, item.quantity) for item in line_items
                ],
                client_reference_id=str(order.id),
                success_url=f"{self._site_url}/api/checkout-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self._site_url}/cancel",
                customer_email=order.customer_email or None,
                metadata={"order_number": order.order_number, "source": "partner"},
            )
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.error("partner.session_failed", order_id=str(order.id), error=str(exc))
            self._events.apply(
                PaymentFailed(
                    reference=str(order.id),
                    note="Payment provider error (partner checkout)",
                    source="partner",
                )
            )
            raise PaymentProviderError(str(exc)) from exc

        self._order_repo.update_fields(order, stripe_session_id=session.id)
        logger.info(
            "partner.session_created",
            order_id=str(order.id),
            session_id=session.id,
            total_cents=total_cents,
        )
        return {
            "checkout_url": session.url,
            "session_id": session.id,
            "order": {
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
            },
        }

    def complete(self, session_id: str) -> str:
        """Return the partner URL to send the buyer to after Stripe.

        A paid session is confirmed here too, in case the webhook is late.

        Raises:
            InvalidCheckout: the session is neither paid nor unpaid.
            PaymentProviderError: Stripe could not be reached.
        """
        session = self._gateway.retrieve_session(session_id)
        if session.payment_status not in ("paid", "unpaid"):
            raise InvalidCheckout("invalid_status")

        if session.payment_status == "paid" and session.client_reference_id:
            self._events.apply(
                PaymentConfirmed(
                    reference=session.client_reference_id,
                    note="Payment confirmed via Stripe (checkout success redirect)",
                    payment_method=PaymentMethod.CREDIT_CARD,
                    source="stripe_redirect",
                )
            )

        params = {"session_id": session_id, "payment_status": session.payment_status}
        if session.client_reference_id:
            params["client_reference_id"] = session.client_reference_id
        return f"{self._return_url}?{urlencode(params)}"

    def error_url(self, reason: str) -> str:
        return f"{self._site_url}/success-error?{urlencode({'reason': reason})}"


def build_event_service() -> PaymentEventService:
    """Wire ``PaymentEventService`` with its Django ORM collaborators."""
    from modules.orders.confirmation import build_confirmation_service
    from modules.orders.repositories import OrderDjangoRepository

    return PaymentEventService(
        order_repository=OrderDjangoRepository(),
        confirmation_service=build_confirmation_service(),
    )
