"""Payment API views: provider webhooks, status polls and partner checkout.

Webhook endpoints authenticate by signature, never by JWT, so they run
without DRF authentication and throttling.  Every confirmation they
trigger goes through ``PaymentEventService`` and from there through the
reconciler.
"""

from __future__ import annotations

import structlog
from django.conf import settings
from django.http import HttpResponseRedirect
from pydantic import ValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.authentication import PartnerSecretAuthentication
from modules.orders.constants import GENERIC_PROVIDER_ERROR
from modules.orders.exceptions import InvalidCheckout
from modules.orders.repositories import OrderDjangoRepository
from modules.payments.exceptions import (
    InvalidSignature,
    PaymentProviderError,
    ProviderNotConfigured,
)
from modules.payments.providers import BarterPayClient, NOWPaymentsClient, StripeGateway
from modules.payments.providers.green import plaid_iframe_url
from modules.payments.serializers import (
    BarterPayCallbackSerializer,
    PartnerCheckoutSerializer,
)
from modules.payments.services import (
    PartnerCheckoutService,
    PaymentStatusService,
    build_event_service,
)

logger = structlog.get_logger(__name__)


def _provider_error() -> Response:
    return Response(
        {"detail": GENERIC_PROVIDER_ERROR},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class _WebhookView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = PaymentStatusService(build_event_service())


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


class StripeWebhookView(_WebhookView):
    """POST /api/webhooks/stripe"""

    def post(self, request: Request) -> Response:
        try:
            outcome = self._service.handle_stripe_event(
                StripeGateway.from_settings(),
                request.body,
                request.META.get("HTTP_STRIPE_SIGNATURE"),
            )
        except ProviderNotConfigured:
            logger.error("stripe.webhook_secret_missing")
            return Response(
                {"detail": "Webhook secret not configured"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        except InvalidSignature as exc:
            logger.warning("stripe.webhook_rejected", reason=str(exc))
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except ValidationError:
            return Response({"detail": "Invalid payload"}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"received": True, "outcome": outcome})


class BarterPayCallbackView(_WebhookView):
    """POST /api/webhooks/barterpay"""

    def post(self, request: Request) -> Response:
        serializer = BarterPayCallbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            outcome = self._service.handle_barterpay_callback(
                serializer.to_callback(), settings.BARTERPAY_API_KEY
            )
        except InvalidSignature as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_401_UNAUTHORIZED)

        return Response({"received": True, "outcome": outcome})


class NOWPaymentsIPNView(_WebhookView):
    """POST /api/webhooks/nowpayments"""

    def post(self, request: Request) -> Response:
        try:
            outcome = self._service.handle_nowpayments_ipn(
                dict(request.data),
                request.META.get("HTTP_X_NOWPAYMENTS_SIG"),
                settings.NOWPAYMENTS_IPN_SECRET,
            )
        except InvalidSignature as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_401_UNAUTHORIZED)
        except ValidationError:
            return Response({"detail": "Invalid payload"}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"received": True, "outcome": outcome})


# ---------------------------------------------------------------------------
# Status polls
# ---------------------------------------------------------------------------


class BarterPayStatusView(_WebhookView):
    """GET /api/payments/barterpay/status/<transaction_index>

    Called by the storefront when the buyer returns from BarterPay.
    """

    def get(self, request: Request, transaction_index: str) -> Response:
        try:
            result = self._service.poll_barterpay(
                BarterPayClient.from_settings(), transaction_index
            )
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.error(
                "barterpay.status_check_failed",
                transaction_index=transaction_index,
                error=str(exc),
            )
            return _provider_error()
        return Response(result)


class NOWPaymentsStatusView(_WebhookView):
    """GET /api/payments/nowpayments/status/<payment_id>"""

    def get(self, request: Request, payment_id: str) -> Response:
        if not payment_id.isdigit():
            return Response(
                {"detail": "Invalid payment id"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            result = self._service.poll_nowpayments(NOWPaymentsClient.from_settings(), payment_id)
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.error("nowpayments.status_check_failed", payment_id=payment_id, error=str(exc))
            return _provider_error()
        return Response(result)


class GreenPlaidURLView(APIView):
    """GET /api/payments/green/plaid-url?payor_id=

    Bank-link iframe shown before a Green checkout.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        try:
            url = plaid_iframe_url(
                settings.GREEN_MERCHANT_ID, request.query_params.get("payor_id", "")
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except ProviderNotConfigured:
            return _provider_error()
        return Response({"url": url})


# ---------------------------------------------------------------------------
# Partner checkout
# ---------------------------------------------------------------------------


def _partner_service() -> PartnerCheckoutService:
    return PartnerCheckoutService(
        order_repository=OrderDjangoRepository(),
        gateway=StripeGateway.from_settings(),
        event_service=build_event_service(),
        site_url=settings.SITE_URL,
        return_url=settings.PARTNER_RETURN_URL,
    )


class CreateCheckoutSessionView(APIView):
    """POST /api/create-checkout-session

    Server-to-server call from the partner storefront, authenticated with
    the shared secret.
    """

    authentication_classes = [PartnerSecretAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        serializer = PartnerCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            session = _partner_service().create_session(serializer.to_dto())
        except InvalidCheckout as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentProviderError:
            return _provider_error()

        return Response(session)


class CheckoutSuccessView(APIView):
    """GET /api/checkout-success?session_id=

    Stripe sends the partner's buyer here; always answers with a redirect.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request: Request) -> HttpResponseRedirect:
        service = _partner_service()
        session_id = request.query_params.get("session_id", "").strip()
        if not session_id:
            return HttpResponseRedirect(service.error_url("no_session"))

        try:
            target = service.complete(session_id)
        except InvalidCheckout:
            return HttpResponseRedirect(service.error_url("invalid_status"))
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.error("partner.checkout_success_failed", session_id=session_id, error=str(exc))
            return HttpResponseRedirect(service.error_url("error"))

        return HttpResponseRedirect(target)
