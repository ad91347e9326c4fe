"""Stripe Checkout gateway.

Thin wrapper over the ``stripe`` SDK: creates and retrieves Checkout
Sessions and verifies webhook signatures.  SDK errors surface as
``PaymentProviderError``; signature problems as ``InvalidSignature``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import stripe
import structlog
from pydantic import BaseModel, ConfigDict

from modules.payments.exceptions import (
    InvalidSignature,
    PaymentProviderError,
    ProviderNotConfigured,
)

logger = structlog.get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class CheckoutSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    client_reference_id: Optional[str] = None


def line_item(name: str, unit_amount_cents: int, quantity: int = 1) -> Dict[str, Any]:
    return {
        "price_data": {
            "currency": "usd",
            "product_data": {"name": name},
            "unit_amount": unit_amount_cents,
        },
        "quantity": quantity,
    }


class StripeGateway:
    def __init__(self, secret_key: str, webhook_secret: str = "") -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls) -> StripeGateway:
        from django.conf import settings

        return cls(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)

    # ------------------------------------------------------------------
    # Checkout Sessions
    # ------------------------------------------------------------------

    def create_checkout_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        client_reference_id: str,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSession:
        if not self._secret_key:
            raise ProviderNotConfigured("STRIPE_SECRET_KEY is not set")

        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": line_items,
            "client_reference_id": client_reference_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata or {},
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(api_key=self._secret_key, **params)
        except stripe.StripeError as exc:
            logger.error(
                "stripe.session_create_failed",
                client_reference_id=client_reference_id,
                error=str(exc),
            )
            raise PaymentProviderError(str(exc)) from exc

        logger.info(
            "stripe.session_created",
            session_id=session["id"],
            client_reference_id=client_reference_id,
        )
        return self._to_session(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        if not self._secret_key:
            raise ProviderNotConfigured("STRIPE_SECRET_KEY is not set")
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)
        except stripe.StripeError as exc:
            logger.error("stripe.session_retrieve_failed", session_id=session_id, error=str(exc))
            raise PaymentProviderError(str(exc)) from exc
        return self._to_session(session)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def verify_webhook(self, payload: bytes, signature_header: Optional[str]) -> None:
        """Check the ``Stripe-Signature`` header against the raw body.

        Raises:
            ProviderNotConfigured: no webhook secret configured.
            InvalidSignature: header missing or signature mismatch.
        """
        if not self._webhook_secret:
            raise ProviderNotConfigured("STRIPE_WEBHOOK_SECRET is not set")
        if not signature_header:
            raise InvalidSignature("No signature")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature_header,
                self._webhook_secret,
                tolerance=WEBHOOK_TOLERANCE_SECONDS,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise InvalidSignature("Invalid signature") from exc

    @staticmethod
    def _to_session(session: Any) -> CheckoutSession:
        return CheckoutSession(
            id=session["id"],
            url=session.get("url"),
            payment_status=session.get("payment_status"),
            client_reference_id=session.get("client_reference_id"),
        )
