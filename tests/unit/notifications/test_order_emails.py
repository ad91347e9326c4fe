"""Unit tests for the order email builders."""

from __future__ import annotations

import pytest

from modules.notifications.emails import (
    build_order_confirmation,
    build_payment_instructions,
    build_status_change,
    build_support_notification,
)
from modules.orders.constants import PaymentMethod

pytestmark = pytest.mark.unit


def test_confirmation_lists_items_and_backorder(make_order, make_variant):
    order = make_order([(make_variant(price="50.00"), 2), (make_variant(size="5mg"), 1, True)])

    subject, body = build_order_confirmation(order, PaymentMethod.CREDIT_CARD)

    assert subject == f"Order #{order.order_number} confirmed - Purgo Style Labs"
    assert "Test Peptide (10mg) x2 @ $50.00" in body
    assert "(5mg) x1 @ $50.00 [BACKORDER]" in body
    assert "Some items are on backorder" in body
    assert "Payment method: Credit/Debit Card" in body


def test_payment_instructions_for_card_link(make_order):
    order = make_order(payment_method=PaymentMethod.CARD_LINK)

    subject, body = build_payment_instructions(order, {"payment_link": "https://pay.test/link"})

    assert subject.startswith("Complete your payment")
    assert "Pay securely by card here: https://pay.test/link" in body


def test_status_change_title(make_order):
    subject, body = build_status_change(make_order(), "DELIVERED")

    assert "Order Delivered" in subject
    assert "is now DELIVERED" in body


def test_support_notification_flags_pending_payment(make_order):
    order = make_order()

    subject, body = build_support_notification(order)

    assert subject == f"New Order Received: #{order.order_number} - PENDING PAYMENT"
    assert "Customer: guest@example.com" in body
