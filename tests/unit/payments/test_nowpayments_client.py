"""Unit tests for the NOWPayments client and IPN signature."""

from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from modules.orders.constants import PaymentStatus
from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured
from modules.payments.providers.nowpayments import (
    NOWPaymentsClient,
    map_nowpayments_status,
    nowpayments_signature,
    verify_nowpayments_signature,
)

pytestmark = pytest.mark.unit

SECRET = "nowpayments-ipn-secret"


class TestIPNSignature:
    def test_signature_is_hmac_of_sorted_body(self):
        body = {"payment_status": "finished", "payment_id": 5077125051, "order_id": "PL-1"}
        expected = hmac.new(
            SECRET.encode(),
            b'{"order_id":"PL-1","payment_id":5077125051,"payment_status":"finished"}',
            hashlib.sha512,
        ).hexdigest()

        assert nowpayments_signature(body, SECRET) == expected

    def test_nested_keys_sorted(self):
        body = {"fee": {"withdrawalFee": 0, "currency": "btc"}, "payment_id": 1}
        shuffled = {"payment_id": 1, "fee": {"currency": "btc", "withdrawalFee": 0}}

        assert nowpayments_signature(body, SECRET) == nowpayments_signature(shuffled, SECRET)

    def test_verify_accepts_uppercase_hex(self):
        body = {"payment_id": 1, "payment_status": "waiting"}
        signature = nowpayments_signature(body, SECRET).upper()

        assert verify_nowpayments_signature(body, signature, SECRET)

    def test_verify_rejects_other_secret(self):
        body = {"payment_id": 1}
        assert not verify_nowpayments_signature(body, nowpayments_signature(body, "x"), SECRET)

    def test_verify_rejects_missing_signature(self):
        assert not verify_nowpayments_signature({"payment_id": 1}, None, SECRET)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("finished", PaymentStatus.PAID),
        ("confirmed", PaymentStatus.PAID),
        ("failed", PaymentStatus.FAILED),
        ("expired", PaymentStatus.FAILED),
        ("refunded", PaymentStatus.FAILED),
        ("waiting", PaymentStatus.PENDING),
        ("partially_paid", PaymentStatus.PENDING),
        ("confirming", PaymentStatus.PENDING),
    ],
)
def test_status_mapping(raw, expected):
    assert map_nowpayments_status(raw) == expected


class TestClient:
    def test_create_payment(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers["x-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "payment_id": 5077125051,
                    "payment_status": "waiting",
                    "pay_address": "bc1qexample",
                    "pay_amount": 0.00151,
                    "pay_currency": "btc",
                    "price_amount": 98.32,
                },
            )

        client = NOWPaymentsClient(
            "https://nowpayments.test/v1", "key-1", transport=httpx.MockTransport(handler)
        )
        payment = client.create_payment(
            price_amount=Decimal("98.32"),
            order_id="PL-1",
            pay_currency="btc",
            ipn_callback_url="https://shop.test/api/webhooks/nowpayments",
        )

        assert payment.payment_id == "5077125051"
        assert float(payment.pay_amount) == 0.00151
        assert seen["path"] == "/v1/payment"
        assert seen["key"] == "key-1"
        assert seen["body"]["price_amount"] == 98.32
        assert seen["body"]["ipn_callback_url"] == "https://shop.test/api/webhooks/nowpayments"
        assert "success_url" not in seen["body"]

    def test_get_payment(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/payment/42"
            return httpx.Response(200, json={"payment_id": 42, "payment_status": "finished"})

        client = NOWPaymentsClient(
            "https://nowpayments.test/v1", "key-1", transport=httpx.MockTransport(handler)
        )

        assert client.get_payment("42").payment_status == "finished"

    def test_api_error(self):
        client = NOWPaymentsClient(
            "https://nowpayments.test/v1",
            "key-1",
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"message": "bad"})),
        )
        with pytest.raises(PaymentProviderError, match="400"):
            client.get_payment("42")

    def test_missing_key(self):
        with pytest.raises(ProviderNotConfigured):
            NOWPaymentsClient("https://nowpayments.test/v1", "").get_payment("42")
