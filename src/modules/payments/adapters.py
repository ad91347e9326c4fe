"""Payment adapters: one per payment method.

An adapter turns a freshly created PENDING order into whatever the
buyer needs next: a redirect URL, a crypto deposit address, a bank draft
or plain payment instructions.  Adapters never touch order state
themselves; they report provider references and whether the payment is
already settled through ``PaymentStart``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from modules.core.money import to_cents
from modules.orders.constants import PaymentMethod
from modules.orders.exceptions import InvalidCheckout
from modules.payments.exceptions import ProviderNotConfigured
from modules.payments.providers.stripe_gateway import line_item

if TYPE_CHECKING:
    from modules.orders.dtos import CheckoutDTO
    from modules.orders.models import Order
    from modules.payments.providers import (
        BarterPayClient,
        GreenClient,
        NOWPaymentsClient,
        StripeGateway,
    )


VENMO_NOTE = "Online Goods"


class PaymentStart(BaseModel):
    """What an adapter produced for a pending order."""

    model_config = ConfigDict(frozen=True)

    order_fields: Dict[str, Any] = Field(default_factory=dict)
    response: Dict[str, Any] = Field(default_factory=dict)
    instructions: Optional[Dict[str, str]] = None
    confirmed: bool = False
    confirmation_note: str = ""


class PaymentAdapter:
    payment_method: str = ""

    def validate(self, dto: CheckoutDTO) -> None:
        """Reject the request before an order exists."""

    def initial_fields(self, dto: CheckoutDTO) -> Dict[str, Any]:
        """Extra Order columns known before the provider is called."""
        return {}

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Redirect providers
# ---------------------------------------------------------------------------


class StripeCheckoutAdapter(PaymentAdapter):
    payment_method = PaymentMethod.CREDIT_CARD

    def __init__(self, gateway: StripeGateway, site_url: str) -> None:
        self._gateway = gateway
        self._site_url = site_url.rstrip("/")

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        session = self._gateway.create_checkout_session(
            line_items=[line_item(f"Order #{order.order_number}", to_cents(order.total))],
            client_reference_id=str(order.id),
            success_url=(
                f"{self._site_url}/order-success"
                f"?order={order.order_number}&session_id={{CHECKOUT_SESSION_ID}}"
            ),
            cancel_url=f"{self._site_url}/checkout/cancel",
            customer_email=order.customer_email or None,
            metadata={"order_number": order.order_number},
        )
        return PaymentStart(
            order_fields={"stripe_session_id": session.id},
            response={"checkout_url": session.url, "session_id": session.id},
        )


class BarterPayAdapter(PaymentAdapter):
    payment_method = PaymentMethod.BARTERPAY

    def __init__(self, client: BarterPayClient) -> None:
        self._client = client

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        deposit = self._client.add_in_deposit_queue(order.order_number, order.total)
        return PaymentStart(
            order_fields={"barterpay_transaction_index": deposit.transaction_index},
            response={
                "redirect_url": deposit.redirect_url,
                "transaction_index": deposit.transaction_index,
            },
        )


class CryptoAdapter(PaymentAdapter):
    payment_method = PaymentMethod.CRYPTO

    def __init__(
        self, client: NOWPaymentsClient, site_url: str, default_currency: str = "btc"
    ) -> None:
        self._client = client
        self._site_url = site_url.rstrip("/")
        self._default_currency = default_currency

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        payment = self._client.create_payment(
            price_amount=order.total,
            order_id=order.order_number,
            pay_currency=(dto.pay_currency or self._default_currency).lower(),
            order_description=f"Order #{order.order_number}",
            ipn_callback_url=f"{self._site_url}/api/webhooks/nowpayments",
            success_url=f"{self._site_url}/order-success?order={order.order_number}",
            cancel_url=f"{self._site_url}/checkout/cancel",
        )
        return PaymentStart(
            order_fields={"nowpayments_payment_id": payment.payment_id},
            response={
                "payment_id": payment.payment_id,
                "pay_address": payment.pay_address,
                "pay_amount": str(payment.pay_amount) if payment.pay_amount is not None else None,
                "pay_currency": payment.pay_currency,
            },
        )


# ---------------------------------------------------------------------------
# Bank draft
# ---------------------------------------------------------------------------


class GreenAdapter(PaymentAdapter):
    """Drafts the buyer's verified bank account.

    The draft is real-time verified, so an accepted draft settles the
    order immediately.
    """

    payment_method = PaymentMethod.GREEN

    def __init__(self, client: GreenClient) -> None:
        self._client = client

    def validate(self, dto: CheckoutDTO) -> None:
        if not (dto.payor_id or "").strip():
            raise InvalidCheckout("Payor_ID is required")

    def initial_fields(self, dto: CheckoutDTO) -> Dict[str, Any]:
        return {"green_payor_id": dto.payor_id.strip()}

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        payor_id = order.green_payor_id
        self._client.get_customer_information(payor_id)
        draft = self._client.one_time_draft_rtv(
            payor_id, order.total, memo=f"Order {order.order_number}"
        )
        check_id = draft.get("Check_ID", "")
        return PaymentStart(
            order_fields={"green_check_id": check_id},
            response={"check_id": check_id},
            confirmed=True,
            confirmation_note="Payment confirmed via Green eDebit",
        )


# ---------------------------------------------------------------------------
# Manual instructions
# ---------------------------------------------------------------------------


class VenmoAdapter(PaymentAdapter):
    payment_method = PaymentMethod.VENMO

    def __init__(self, handle: str) -> None:
        self._handle = handle

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        if not self._handle:
            raise ProviderNotConfigured("VENMO_HANDLE is not set")
        instructions = {
            "handle": self._handle,
            "amount": str(order.total),
            "note": VENMO_NOTE,
        }
        return PaymentStart(response={"instructions": instructions}, instructions=instructions)


class CardLinkAdapter(PaymentAdapter):
    payment_method = PaymentMethod.CARD_LINK

    def __init__(self, payment_link: str) -> None:
        self._payment_link = payment_link

    def start(self, order: Order, dto: CheckoutDTO) -> PaymentStart:
        if not self._payment_link:
            raise ProviderNotConfigured("CARD_PAYMENT_LINK is not set")
        instructions = {
            "payment_link": self._payment_link,
            "amount": str(order.total),
        }
        return PaymentStart(response={"instructions": instructions}, instructions=instructions)


def build_adapter(payment_method: str) -> PaymentAdapter:
    """Construct the adapter for *payment_method* from Django settings."""
    from django.conf import settings

    from modules.payments.providers import (
        BarterPayClient,
        GreenClient,
        NOWPaymentsClient,
        StripeGateway,
    )

    if payment_method == PaymentMethod.CREDIT_CARD:
        return StripeCheckoutAdapter(StripeGateway.from_settings(), settings.SITE_URL)
    if payment_method == PaymentMethod.BARTERPAY:
        return BarterPayAdapter(BarterPayClient.from_settings())
    if payment_method == PaymentMethod.CRYPTO:
        return CryptoAdapter(
            NOWPaymentsClient.from_settings(),
            settings.SITE_URL,
            settings.NOWPAYMENTS_PAY_CURRENCY,
        )
    if payment_method == PaymentMethod.GREEN:
        return GreenAdapter(GreenClient.from_settings())
    if payment_method == PaymentMethod.VENMO:
        return VenmoAdapter(settings.VENMO_HANDLE)
    if payment_method == PaymentMethod.CARD_LINK:
        return CardLinkAdapter(settings.CARD_PAYMENT_LINK)
    raise ValueError(f"Unsupported payment method: {payment_method}")
