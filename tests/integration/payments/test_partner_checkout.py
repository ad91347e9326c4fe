"""Integration tests for the partner storefront checkout.

Covers:
- Shared-secret authentication on ``create-checkout-session``.
- Both accepted body shapes (cents line items, dollar products).
- The 50 cent minimum.
- ``checkout-success`` redirects, including the paid-session fallback.
"""

from __future__ import annotations

from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from modules.orders.constants import PaymentMethod, PaymentStatus
from modules.orders.models import Order
from modules.payments.exceptions import PaymentProviderError
from modules.payments.providers import StripeGateway
from modules.payments.providers.stripe_gateway import CheckoutSession

pytestmark = pytest.mark.integration

SECRET = "partner-shared-secret"
URL = "/api/create-checkout-session"


@pytest.fixture()
def stripe_calls(monkeypatch):
    calls = []

    def fake_create(self, **kwargs):
        calls.append(kwargs)
        return CheckoutSession(id="cs_partner_1", url="https://checkout.stripe.test/cs_partner_1")

    monkeypatch.setattr(StripeGateway, "create_checkout_session", fake_create)
    return calls


def _create(api_client, body, **headers):
    return api_client.post(URL, body, format="json", **headers)


class TestAuthentication:
    def test_no_secret_is_401(self, api_client, stripe_calls):
        response = _create(api_client, {"line_items": [{"amount": 5000}]})

        assert response.status_code == 401
        assert Order.objects.count() == 0

    def test_wrong_secret_is_401(self, api_client, stripe_calls):
        response = _create(
            api_client,
            {"line_items": [{"amount": 5000}]},
            HTTP_AUTHORIZATION="Bearer wrong-secret",
        )

        assert response.status_code == 401
        assert Order.objects.count() == 0

    def test_legacy_header_accepted(self, api_client, stripe_calls):
        response = _create(
            api_client,
            {"line_items": [{"amount": 5000}]},
            HTTP_X_INTERNAL_SECRET=SECRET,
        )

        assert response.status_code == 200

    def test_unset_secret_rejects_everything(self, api_client, stripe_calls, settings):
        settings.STRIPE_CREATE_SESSION_SECRET = ""

        response = _create(
            api_client,
            {"line_items": [{"amount": 5000}]},
            HTTP_AUTHORIZATION=f"Bearer {SECRET}",
        )

        assert response.status_code == 401


class TestCreateSession:
    def test_line_items_in_cents(self, api_client, stripe_calls):
        response = _create(
            api_client,
            {
                "line_items": [{"name": "BPC-157", "quantity": 2, "amount": 2500}],
                "customer_email": "partner-buyer@example.com",
            },
            HTTP_AUTHORIZATION=f"Bearer {SECRET}",
        )

        assert response.status_code == 200
        data = response.json()
        assert data["checkout_url"] == "https://checkout.stripe.test/cs_partner_1"
        assert data["session_id"] == "cs_partner_1"

        order = Order.objects.get()
        assert data["order"] == {
            "id": str(order.id),
            "order_number": order.order_number,
            "status": "PENDING",
        }
        assert order.payment_method == PaymentMethod.CREDIT_CARD
        assert order.total == Decimal("50.00")
        assert order.subtotal == Decimal("46.50")
        assert order.email == "partner-buyer@example.com"
        assert order.stripe_session_id == "cs_partner_1"
        assert order.items.count() == 0

        call = stripe_calls[0]
        assert call["client_reference_id"] == str(order.id)
        assert call["line_items"][0]["quantity"] == 2
        assert call["line_items"][0]["price_data"]["unit_amount"] == 2500
        assert call["success_url"] == (
            "https://shop.test/api/checkout-success?session_id={CHECKOUT_SESSION_ID}"
        )

    def test_products_with_dollar_amount(self, api_client, stripe_calls):
        response = _create(
            api_client,
            {
                "products": [{"name": "TB-500", "quantity": 1, "unitPrice": "42.25"}],
                "amount": "45.75",
            },
            HTTP_AUTHORIZATION=f"Bearer {SECRET}",
        )

        assert response.status_code == 200
        assert stripe_calls[0]["line_items"][0]["price_data"]["unit_amount"] == 4225
        assert Order.objects.get().total == Decimal("45.75")

    def test_below_minimum_rejected(self, api_client, stripe_calls):
        response = _create(
            api_client,
            {"line_items": [{"amount": 49}]},
            HTTP_AUTHORIZATION=f"Bearer {SECRET}",
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request: amount must be at least 50 cents"
        assert Order.objects.count() == 0
        assert stripe_calls == []

    def test_empty_body_rejected(self, api_client, stripe_calls):
        response = _create(api_client, {}, HTTP_AUTHORIZATION=f"Bearer {SECRET}")

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid request: provide line_items")

    def test_stripe_failure_marks_order_failed(self, api_client, monkeypatch):
        def boom(self, **kwargs):
            raise PaymentProviderError("Invalid API Key provided")

        monkeypatch.setattr(StripeGateway, "create_checkout_session", boom)

        response = _create(
            api_client,
            {"line_items": [{"amount": 5000}]},
            HTTP_AUTHORIZATION=f"Bearer {SECRET}",
        )

        assert response.status_code == 500
        assert "Invalid API Key" not in response.json()["detail"]
        assert Order.objects.get().payment_status == PaymentStatus.FAILED


class TestCheckoutSuccess:
    @pytest.fixture()
    def partner_order(self, make_order):
        return make_order(email="", points_earned=0, stripe_session_id="cs_partner_1")

    def _retrieve(self, monkeypatch, **session):
        monkeypatch.setattr(
            StripeGateway,
            "retrieve_session",
            lambda self, session_id: CheckoutSession(id=session_id, **session),
        )

    def test_no_session_id(self, api_client):
        response = api_client.get("/api/checkout-success")

        assert response.status_code == 302
        assert response["Location"] == "https://shop.test/success-error?reason=no_session"

    def test_paid_session_confirms_and_redirects(
        self, api_client, partner_order, monkeypatch, django_capture_on_commit_callbacks
    ):
        self._retrieve(
            monkeypatch, payment_status="paid", client_reference_id=str(partner_order.id)
        )

        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.get("/api/checkout-success", {"session_id": "cs_partner_1"})

        assert response.status_code == 302
        location = urlparse(response["Location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == (
            "https://partner.test/checkout/return"
        )
        assert parse_qs(location.query) == {
            "session_id": ["cs_partner_1"],
            "payment_status": ["paid"],
            "client_reference_id": [str(partner_order.id)],
        }
        partner_order.refresh_from_db()
        assert partner_order.payment_status == PaymentStatus.PAID

    def test_unpaid_session_redirects_without_confirming(
        self, api_client, partner_order, monkeypatch
    ):
        self._retrieve(
            monkeypatch, payment_status="unpaid", client_reference_id=str(partner_order.id)
        )

        response = api_client.get("/api/checkout-success", {"session_id": "cs_partner_1"})

        assert response.status_code == 302
        assert "payment_status=unpaid" in response["Location"]
        partner_order.refresh_from_db()
        assert partner_order.payment_status == PaymentStatus.PENDING

    def test_unexpected_status(self, api_client, monkeypatch):
        self._retrieve(monkeypatch, payment_status="no_payment_required")

        response = api_client.get("/api/checkout-success", {"session_id": "cs_partner_1"})

        assert response["Location"] == "https://shop.test/success-error?reason=invalid_status"

    def test_stripe_unreachable(self, api_client, monkeypatch):
        def boom(self, session_id):
            raise PaymentProviderError("timeout")

        monkeypatch.setattr(StripeGateway, "retrieve_session", boom)

        response = api_client.get("/api/checkout-success", {"session_id": "cs_partner_1"})

        assert response["Location"] == "https://shop.test/success-error?reason=error"


class TestGreenPlaidURL:
    def test_url_returned(self, api_client):
        response = api_client.get("/api/payments/green/plaid-url", {"payor_id": "998877"})

        assert response.status_code == 200
        assert response.json() == {
            "url": "https://greenbyphone.com/Plaid?client_id=654321&customer_id=998877"
        }

    def test_payor_required(self, api_client):
        response = api_client.get("/api/payments/green/plaid-url")

        assert response.status_code == 400
        assert response.json() == {"detail": "Payor_ID is required"}
