from __future__ import annotations

import hashlib
import hmac
import json
import time
from decimal import Decimal
from itertools import count

import pytest

from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.catalog.models import Product, ProductVariant
from modules.orders.constants import PaymentMethod
from modules.orders.models import Order, OrderItem

User = get_user_model()

_sku_seq = count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def buyer():
    return User.objects.create_user(
        username="buyer", email="buyer@example.com", password="testpass123"
    )


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="staff", email="staff@example.com", password="testpass123", is_staff=True
    )


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def product():
    return Product.objects.create(name="Test Peptide", slug="test-peptide")


@pytest.fixture()
def make_variant(product):
    def _make(price="50.00", stock_count=10, size="10mg", **overrides):
        values = {
            "product": product,
            "sku": f"SKU-{next(_sku_seq)}",
            "size": size,
            "price": Decimal(price),
            "stock_count": stock_count,
        }
        values.update(overrides)
        return ProductVariant.objects.create(**values)

    return _make


@pytest.fixture()
def variant(make_variant):
    return make_variant()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_order():
    """Persist a PENDING order with one line per ``(variant, quantity)`` pair."""

    def _make(lines=(), **overrides):
        values = {
            "email": "guest@example.com",
            "payment_method": PaymentMethod.CREDIT_CARD,
            "subtotal": Decimal("100.00"),
            "shipping_insurance": Decimal("3.50"),
            "total": Decimal("103.50"),
            "points_earned": 100,
        }
        values.update(overrides)
        order = Order.objects.create(**values)
        for line in lines:
            line_variant, quantity = line[0], line[1]
            OrderItem.objects.create(
                order=order,
                product=line_variant.product,
                variant=line_variant,
                quantity=quantity,
                price=line_variant.price,
                is_backorder=line[2] if len(line) > 2 else False,
            )
        return order

    return _make


# ---------------------------------------------------------------------------
# Webhook signing
# ---------------------------------------------------------------------------


def stripe_signature_header(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe signs webhooks."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event_payload(event_type: str, client_reference_id: str, **session) -> str:
    session_object = {
        "id": session.pop("id", "cs_test_123"),
        "object": "checkout.session",
        "client_reference_id": client_reference_id,
        "payment_status": session.pop("payment_status", "paid"),
        **session,
    }
    return json.dumps(
        {
            "id": "evt_test_123",
            "object": "event",
            "type": event_type,
            "data": {"object": session_object},
        }
    )


@pytest.fixture()
def stripe_webhook(api_client, settings):
    """POST a signed Stripe event to the webhook endpoint."""

    def _post(event_type, client_reference_id, signature=None, **session):
        payload = stripe_event_payload(event_type, client_reference_id, **session)
        header = signature or stripe_signature_header(payload, settings.STRIPE_WEBHOOK_SECRET)
        return api_client.post(
            "/api/webhooks/stripe",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=header,
        )

    return _post
