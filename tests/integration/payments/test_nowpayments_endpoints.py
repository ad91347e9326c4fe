"""Integration tests for the NOWPayments IPN, status poll and crypto poller task."""

from __future__ import annotations

import hashlib
import hmac
import json

import pytest

from modules.orders.constants import PaymentMethod, PaymentStatus
from modules.orders.tasks import check_pending_crypto_payments
from modules.payments.exceptions import PaymentProviderError
from modules.payments.providers import NOWPaymentsClient
from modules.payments.providers.nowpayments import NOWPayment, nowpayments_signature

pytestmark = pytest.mark.integration

IPN_SECRET = "nowpayments-ipn-secret"


@pytest.fixture()
def crypto_order(make_order, variant):
    return make_order(
        [(variant, 1)],
        payment_method=PaymentMethod.CRYPTO,
        nowpayments_payment_id="5077125051",
    )


def _ipn(api_client, body, signature=None):
    return api_client.post(
        "/api/webhooks/nowpayments",
        data=json.dumps(body),
        content_type="application/json",
        HTTP_X_NOWPAYMENTS_SIG=signature or nowpayments_signature(body, IPN_SECRET),
    )


class TestIPN:
    def test_finished_payment_confirms_order(
        self, api_client, crypto_order, variant, mailoutbox, django_capture_on_commit_callbacks
    ):
        body = {
            "payment_id": 5077125051,
            "payment_status": "finished",
            "order_id": crypto_order.order_number,
            "pay_currency": "btc",
        }

        with django_capture_on_commit_callbacks(execute=True):
            response = _ipn(api_client, body)

        assert response.status_code == 200
        assert response.json()["outcome"] == "confirmed"
        crypto_order.refresh_from_db()
        assert crypto_order.payment_status == PaymentStatus.PAID
        variant.refresh_from_db()
        assert variant.stock_count == 9
        assert "cryptocurrency payment has been confirmed" in mailoutbox[0].body

    def test_waiting_payment_is_pending(self, api_client, crypto_order):
        response = _ipn(api_client, {"payment_id": 5077125051, "payment_status": "waiting"})

        assert response.json()["outcome"] == "pending"

    def test_bad_signature_is_401(self, api_client, crypto_order):
        response = _ipn(
            api_client,
            {"payment_id": 5077125051, "payment_status": "finished"},
            signature="deadbeef",
        )

        assert response.status_code == 401
        crypto_order.refresh_from_db()
        assert crypto_order.payment_status == PaymentStatus.PENDING

    def test_body_without_status_is_400(self, api_client, crypto_order):
        response = _ipn(api_client, {"payment_id": 5077125051})

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid payload"}

    def test_amounts_signed_in_javascript_form(self, api_client, crypto_order):
        template = (
            '{{"actually_paid":{paid},"order_id":"' + crypto_order.order_number + '",'
            '"payment_id":5077125051,"payment_status":"finished","price_amount":{price}}}'
        )
        signed_text = template.format(paid="0.00005", price="100")
        signature = hmac.new(
            IPN_SECRET.encode(), signed_text.encode(), hashlib.sha512
        ).hexdigest()

        response = api_client.post(
            "/api/webhooks/nowpayments",
            data=template.format(paid="0.00005", price="100.00"),
            content_type="application/json",
            HTTP_X_NOWPAYMENTS_SIG=signature,
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "confirmed"


class TestStatusPoll:
    def test_non_numeric_id_rejected(self, api_client):
        response = api_client.get("/api/payments/nowpayments/status/abc")

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid payment id"}

    def test_poll_confirms(self, api_client, crypto_order, monkeypatch):
        monkeypatch.setattr(
            NOWPaymentsClient,
            "get_payment",
            lambda self, payment_id: NOWPayment(payment_id=payment_id, payment_status="confirmed"),
        )

        response = api_client.get("/api/payments/nowpayments/status/5077125051")

        assert response.status_code == 200
        assert response.json() == {
            "payment_id": "5077125051",
            "payment_status": "confirmed",
            "status": "PAID",
            "outcome": "confirmed",
        }


class TestCryptoPollerTask:
    def test_polls_each_pending_crypto_order(self, make_order, crypto_order, monkeypatch):
        make_order(payment_method=PaymentMethod.CRYPTO, nowpayments_payment_id="")
        make_order(
            payment_method=PaymentMethod.CRYPTO,
            nowpayments_payment_id="999",
        )

        def fake_get(self, payment_id):
            if payment_id == "999":
                raise PaymentProviderError("NOWPayments API error: 404")
            return NOWPayment(payment_id=payment_id, payment_status="finished")

        monkeypatch.setattr(NOWPaymentsClient, "get_payment", fake_get)

        result = check_pending_crypto_payments.delay().result

        assert result == {crypto_order.order_number: "confirmed"}
        crypto_order.refresh_from_db()
        assert crypto_order.payment_status == PaymentStatus.PAID
