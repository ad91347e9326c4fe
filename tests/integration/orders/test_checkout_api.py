"""Integration tests for ``POST /api/orders/create-<method>``.

Covers:
- Buyer and address validation before any row is written.
- Manual-instruction methods (Venmo, card link).
- Redirect providers with the SDK/HTTP client stubbed out.
- Green drafts settling the order immediately.
- Discount codes applied and counted server-side.
- Provider failures marking the order FAILED behind a generic message.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.customers.models import Address
from modules.discounts.models import DiscountCode, DiscountType
from modules.orders.constants import (
    GENERIC_PROVIDER_ERROR,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.models import Order
from modules.payments.exceptions import PaymentProviderError
from modules.payments.providers import (
    BarterPayClient,
    GreenClient,
    NOWPaymentsClient,
    StripeGateway,
)
from modules.payments.providers.barterpay import BarterPayDeposit
from modules.payments.providers.nowpayments import NOWPayment

pytestmark = pytest.mark.integration

SUPPORT = "support@purgolabs.com"


@pytest.fixture()
def checkout_body(variant):
    def _body(**overrides):
        shipping = {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "street": "1 Main St",
            "city": "Austin",
            "state": "TX",
            "zip_code": "78701",
        }
        shipping.update(overrides.pop("shipping", {}))
        body = {
            "items": [{"variant_id": str(variant.id), "quantity": 2}],
            "shipping_info": shipping,
        }
        body.update(overrides)
        return body

    return _body


def _post(api_client, slug, body):
    return api_client.post(f"/api/orders/create-{slug}", body, format="json")


def _customer_mail(mailoutbox):
    return [mail for mail in mailoutbox if SUPPORT not in mail.to]


# ---------------------------------------------------------------------------
# Validation before any write
# ---------------------------------------------------------------------------


class TestBuyerValidation:
    def test_invalid_guest_email_creates_no_order(self, api_client, checkout_body):
        response = _post(
            api_client, "venmo", checkout_body(shipping={"email": "not-an-email"})
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Please enter a valid email address"}
        assert Order.objects.count() == 0
        assert Address.objects.count() == 0

    def test_missing_email_rejected(self, api_client, checkout_body):
        response = _post(api_client, "venmo", checkout_body(shipping={"email": None}))

        assert response.status_code == 400
        assert response.json()["detail"] == "Email is required"
        assert Order.objects.count() == 0

    def test_single_word_name_rejected(self, api_client, checkout_body):
        response = _post(api_client, "stripe", checkout_body(shipping={"name": "Jane"}))

        assert response.status_code == 400
        assert response.json()["detail"] == "Please enter your full name (first and last name)"
        assert Order.objects.count() == 0

    def test_missing_address_field_rejected(self, api_client, checkout_body):
        response = _post(api_client, "venmo", checkout_body(shipping={"street": ""}))

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required shipping fields: street"
        assert Order.objects.count() == 0

    def test_unknown_variant_rejected(self, api_client, checkout_body):
        body = checkout_body(
            items=[{"variant_id": "018f0000-0000-7000-8000-000000000000", "quantity": 1}]
        )
        response = _post(api_client, "venmo", body)

        assert response.status_code == 400
        assert "is not available" in response.json()["detail"]
        assert Order.objects.count() == 0

    def test_inactive_variant_rejected(self, api_client, checkout_body, variant):
        variant.is_active = False
        variant.save()

        response = _post(api_client, "venmo", checkout_body())

        assert response.status_code == 400
        assert Order.objects.count() == 0

    def test_green_requires_payor_id(self, api_client, checkout_body):
        response = _post(api_client, "green", checkout_body())

        assert response.status_code == 400
        assert response.json()["detail"] == "Payor_ID is required"
        assert Order.objects.count() == 0


# ---------------------------------------------------------------------------
# Manual instructions
# ---------------------------------------------------------------------------


class TestManualMethods:
    def test_venmo_order_with_instructions(self, api_client, checkout_body, mailoutbox, variant):
        response = _post(api_client, "venmo", checkout_body())

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["instructions"] == {
            "handle": "@purgolabs",
            "amount": "98.32",
            "note": "Online Goods",
        }

        order = Order.objects.get()
        assert order.payment_method == PaymentMethod.VENMO
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_method_discount == Decimal("5.18")
        assert order.total == Decimal("98.32")
        assert order.email == "jane@example.com"
        assert data["order"]["order_number"] == order.order_number

        variant.refresh_from_db()
        assert variant.stock_count == 10

        customer_mail = _customer_mail(mailoutbox)
        assert len(customer_mail) == 1
        assert "Send the payment to @purgolabs on Venmo." in customer_mail[0].body
        assert any(SUPPORT in mail.to for mail in mailoutbox)

    def test_card_link_order(self, api_client, checkout_body):
        response = _post(api_client, "card", checkout_body())

        assert response.status_code == 201
        assert response.json()["instructions"]["payment_link"] == "https://pay.test/link"
        order = Order.objects.get()
        assert order.payment_method == PaymentMethod.CARD_LINK
        assert order.total == Decimal("103.50")

    def test_signed_in_buyer_order_linked_to_account(
        self, api_client, checkout_body, buyer
    ):
        api_client.force_authenticate(user=buyer)

        response = _post(api_client, "venmo", checkout_body())

        assert response.status_code == 201
        order = Order.objects.get()
        assert order.user_id == buyer.pk
        assert order.email == "buyer@example.com"
        assert order.shipping_address.user_id == buyer.pk

    def test_repeat_buyer_address_reused(self, api_client, checkout_body, buyer):
        api_client.force_authenticate(user=buyer)

        _post(api_client, "venmo", checkout_body())
        _post(api_client, "venmo", checkout_body())

        assert Order.objects.count() == 2
        assert Address.objects.count() == 1


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------


class TestDiscountAtCheckout:
    def test_percentage_code_applied_and_counted(self, api_client, checkout_body):
        code = DiscountCode.objects.create(
            code="save10", discount_type=DiscountType.PERCENTAGE, discount_amount=Decimal("10")
        )

        response = _post(api_client, "venmo", checkout_body(discount_code=" Save10 "))

        assert response.status_code == 201
        order = Order.objects.get()
        assert order.discount_code == "SAVE10"
        assert order.discount_amount == Decimal("10.00")
        assert order.total == Decimal("88.32")
        code.refresh_from_db()
        assert code.usage_count == 1

    def test_free_shipping_code_zeroes_shipping(self, api_client, checkout_body):
        DiscountCode.objects.create(
            code="SHIPFREE",
            discount_type=DiscountType.FIXED,
            discount_amount=Decimal("0"),
            free_shipping=True,
        )

        response = _post(
            api_client,
            "card",
            checkout_body(discount_code="shipfree", shipping_cost="12.00"),
        )

        assert response.status_code == 201
        order = Order.objects.get()
        assert order.shipping_cost == Decimal("0.00")
        assert order.total == Decimal("103.50")

    def test_exhausted_code_creates_no_order(self, api_client, checkout_body):
        DiscountCode.objects.create(
            code="ONCE", discount_amount=Decimal("10"), usage_limit=1, usage_count=1
        )

        response = _post(api_client, "venmo", checkout_body(discount_code="ONCE"))

        assert response.status_code == 400
        assert response.json()["detail"] == "This code has reached its usage limit"
        assert Order.objects.count() == 0

    def test_unknown_code_rejected(self, api_client, checkout_body):
        response = _post(api_client, "venmo", checkout_body(discount_code="NOPE"))

        assert response.status_code == 400
        assert response.json()["detail"] == "No discount code found"
        assert Order.objects.count() == 0


# ---------------------------------------------------------------------------
# Provider-backed methods
# ---------------------------------------------------------------------------


class TestStripeCheckout:
    def test_session_created(self, api_client, checkout_body, monkeypatch):
        calls = []

        def fake_create(**params):
            calls.append(params)
            return {"id": "cs_test_abc", "url": "https://checkout.stripe.test/cs_test_abc"}

        monkeypatch.setattr("stripe.checkout.Session.create", fake_create)

        response = _post(api_client, "stripe", checkout_body())

        assert response.status_code == 201
        data = response.json()
        assert data["checkout_url"] == "https://checkout.stripe.test/cs_test_abc"
        assert data["session_id"] == "cs_test_abc"

        order = Order.objects.get()
        assert order.stripe_session_id == "cs_test_abc"
        assert order.payment_status == PaymentStatus.PENDING
        params = calls[0]
        assert params["client_reference_id"] == str(order.id)
        assert params["line_items"][0]["price_data"]["unit_amount"] == 10350
        assert params["customer_email"] == "jane@example.com"

    def test_provider_failure_marks_order_failed(self, api_client, checkout_body, monkeypatch):
        def boom(self, **kwargs):
            raise PaymentProviderError("Your card was declined")

        monkeypatch.setattr(StripeGateway, "create_checkout_session", boom)

        response = _post(api_client, "stripe", checkout_body())

        assert response.status_code == 500
        assert response.json() == {"detail": GENERIC_PROVIDER_ERROR}
        order = Order.objects.get()
        assert order.payment_status == PaymentStatus.FAILED
        assert order.status == OrderStatus.PENDING


class TestBarterPayCheckout:
    def test_deposit_queued(self, api_client, checkout_body, monkeypatch):
        monkeypatch.setattr(
            BarterPayClient,
            "add_in_deposit_queue",
            lambda self, transaction_id, amount: BarterPayDeposit(
                transaction_index="TX-1001", redirect_url="https://barterpay.test/pay/TX-1001"
            ),
        )

        response = _post(api_client, "barterpay", checkout_body())

        assert response.status_code == 201
        assert response.json()["redirect_url"] == "https://barterpay.test/pay/TX-1001"
        assert Order.objects.get().barterpay_transaction_index == "TX-1001"


class TestCryptoCheckout:
    def test_payment_created_with_method_discount(self, api_client, checkout_body, monkeypatch):
        captured = {}

        def fake_create(self, **kwargs):
            captured.update(kwargs)
            return NOWPayment(
                payment_id="5077125051",
                payment_status="waiting",
                pay_address="bc1qexampleaddress",
                pay_amount=Decimal("0.00151"),
                pay_currency="btc",
            )

        monkeypatch.setattr(NOWPaymentsClient, "create_payment", fake_create)

        response = _post(api_client, "crypto", checkout_body(pay_currency="BTC"))

        assert response.status_code == 201
        data = response.json()
        assert data["pay_address"] == "bc1qexampleaddress"
        assert data["pay_amount"] == "0.00151"

        order = Order.objects.get()
        assert order.nowpayments_payment_id == "5077125051"
        assert order.total == Decimal("98.32")
        assert captured["pay_currency"] == "btc"
        assert captured["order_id"] == order.order_number
        assert captured["ipn_callback_url"] == "https://shop.test/api/webhooks/nowpayments"


class TestGreenCheckout:
    def test_accepted_draft_confirms_immediately(
        self,
        api_client,
        checkout_body,
        variant,
        monkeypatch,
        mailoutbox,
        django_capture_on_commit_callbacks,
    ):
        monkeypatch.setattr(
            GreenClient,
            "get_customer_information",
            lambda self, payor_id: {"Result": "0", "Payor_ID": payor_id},
        )
        monkeypatch.setattr(
            GreenClient,
            "one_time_draft_rtv",
            lambda self, payor_id, amount, memo: {"Result": "0", "Check_ID": "CHK-77"},
        )

        with django_capture_on_commit_callbacks(execute=True):
            response = _post(api_client, "green", checkout_body(payor_id="998877"))

        assert response.status_code == 201
        assert response.json()["check_id"] == "CHK-77"

        order = Order.objects.get()
        assert order.payment_status == PaymentStatus.PAID
        assert order.status == OrderStatus.PROCESSING
        assert order.green_payor_id == "998877"
        assert order.green_check_id == "CHK-77"

        variant.refresh_from_db()
        assert variant.stock_count == 8
        customer_mail = _customer_mail(mailoutbox)
        assert len(customer_mail) == 1
        assert "confirmed" in customer_mail[0].subject

    def test_rejected_draft_fails_order(self, api_client, checkout_body, variant, monkeypatch):
        def rejected(self, payor_id):
            raise PaymentProviderError("Green GetCustomerInformation failed: Invalid Payor")

        monkeypatch.setattr(GreenClient, "get_customer_information", rejected)

        response = _post(api_client, "green", checkout_body(payor_id="998877"))

        assert response.status_code == 500
        assert response.json()["detail"] == GENERIC_PROVIDER_ERROR
        assert Order.objects.get().payment_status == PaymentStatus.FAILED
        variant.refresh_from_db()
        assert variant.stock_count == 10
