"""Integration tests for the BarterPay callback and status poll."""

from __future__ import annotations

import hashlib

import pytest

from modules.orders.constants import PaymentMethod, PaymentStatus
from modules.payments.exceptions import PaymentProviderError
from modules.payments.providers import BarterPayClient
from modules.payments.providers.barterpay import BarterPayTransaction, barterpay_signature

pytestmark = pytest.mark.integration

API_KEY = "barterpay-test-key"


@pytest.fixture()
def barterpay_order(make_order, variant):
    return make_order(
        [(variant, 2)],
        payment_method=PaymentMethod.BARTERPAY,
        barterpay_transaction_index="TX-1001",
    )


def _callback(api_client, data, signature=None):
    return api_client.post(
        "/api/webhooks/barterpay",
        {"data": data, "signature": signature or barterpay_signature(data, API_KEY)},
        format="json",
    )


class TestCallback:
    def test_success_confirms_by_order_number(
        self, api_client, barterpay_order, variant, mailoutbox, django_capture_on_commit_callbacks
    ):
        data = {
            "ExternalTransactionId": barterpay_order.order_number,
            "TransactionIndex": "TX-1001",
            "TransactionStatus": "Success",
            "TransactionAmount": 103.5,
        }

        with django_capture_on_commit_callbacks(execute=True):
            response = _callback(api_client, data)

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "confirmed"}
        barterpay_order.refresh_from_db()
        assert barterpay_order.payment_status == PaymentStatus.PAID
        variant.refresh_from_db()
        assert variant.stock_count == 8
        assert len(mailoutbox) == 1

    def test_falls_back_to_transaction_index(self, api_client, barterpay_order):
        data = {"TransactionIndex": "TX-1001", "TransactionStatus": "Completed"}

        response = _callback(api_client, data)

        assert response.json()["outcome"] == "confirmed"

    def test_failed_status_marks_failed(self, api_client, barterpay_order):
        data = {
            "ExternalTransactionId": barterpay_order.order_number,
            "TransactionStatus": "Cancelled",
        }

        response = _callback(api_client, data)

        assert response.json()["outcome"] == "failed"
        barterpay_order.refresh_from_db()
        assert barterpay_order.payment_status == PaymentStatus.FAILED

    def test_invalid_signature_is_401(self, api_client, barterpay_order):
        data = {"ExternalTransactionId": barterpay_order.order_number, "TransactionStatus": "Success"}

        response = _callback(api_client, data, signature="0" * 128)

        assert response.status_code == 401
        barterpay_order.refresh_from_db()
        assert barterpay_order.payment_status == PaymentStatus.PENDING

    @pytest.mark.parametrize(
        "sent,signed",
        [("100.00", "100"), ("103.50", "103.5"), ("0.00005", "0.00005"), ("1e-7", "1e-7")],
    )
    def test_amount_signed_in_javascript_form(self, api_client, barterpay_order, sent, signed):
        fields = (
            '"ExternalTransactionId":"' + barterpay_order.order_number + '",'
            '"TransactionAmount":{amount},'
            '"TransactionIndex":"TX-1001","TransactionStatus":"Success"'
        )
        signed_text = "{" + fields.format(amount=signed) + "}"
        signature = hashlib.sha512((signed_text + API_KEY).encode()).hexdigest()
        raw_body = (
            '{"data":{' + fields.format(amount=sent) + '},"signature":"' + signature + '"}'
        )

        response = api_client.post(
            "/api/webhooks/barterpay", data=raw_body, content_type="application/json"
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "confirmed"


class TestStatusPoll:
    def test_poll_confirms_paid_transaction(self, api_client, barterpay_order, monkeypatch):
        monkeypatch.setattr(
            BarterPayClient,
            "check_transaction_status",
            lambda self, index: BarterPayTransaction(
                transaction_index=index, transaction_status="Success"
            ),
        )

        response = api_client.get("/api/payments/barterpay/status/TX-1001")

        assert response.status_code == 200
        assert response.json() == {
            "transaction_index": "TX-1001",
            "transaction_status": "Success",
            "payment_status": "PAID",
            "outcome": "confirmed",
        }
        barterpay_order.refresh_from_db()
        assert barterpay_order.payment_status == PaymentStatus.PAID

    def test_pending_transaction_left_alone(self, api_client, barterpay_order, monkeypatch):
        monkeypatch.setattr(
            BarterPayClient,
            "check_transaction_status",
            lambda self, index: BarterPayTransaction(
                transaction_index=index, transaction_status="Pending"
            ),
        )

        response = api_client.get("/api/payments/barterpay/status/TX-1001")

        assert response.json()["outcome"] == "pending"
        barterpay_order.refresh_from_db()
        assert barterpay_order.payment_status == PaymentStatus.PENDING

    def test_provider_error_is_generic_500(self, api_client, monkeypatch):
        def boom(self, index):
            raise PaymentProviderError("BarterPay API error: 503")

        monkeypatch.setattr(BarterPayClient, "check_transaction_status", boom)

        response = api_client.get("/api/payments/barterpay/status/TX-1001")

        assert response.status_code == 500
        assert "contact support" in response.json()["detail"]
