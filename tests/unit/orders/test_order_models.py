"""Unit tests for Order model behaviour."""

from __future__ import annotations

import re
from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order

pytestmark = pytest.mark.unit

User = get_user_model()


class TestOrderNumber:
    def test_generated_on_first_save(self, make_order):
        order = make_order()
        assert re.fullmatch(r"PL-\d{13}-[0-9A-F]{4}", order.order_number)

    def test_kept_on_later_saves(self, make_order):
        order = make_order()
        number = order.order_number
        order.notes = "gift wrap"
        order.save()
        assert order.order_number == number

    def test_collision_is_retried(self, make_order, monkeypatch):
        existing = make_order()
        candidates = iter([existing.order_number, "PL-1700000000000-BEEF"])
        monkeypatch.setattr(Order, "generate_order_number", staticmethod(lambda: next(candidates)))

        order = make_order()

        assert order.order_number == "PL-1700000000000-BEEF"

    def test_gives_up_after_max_retries(self, make_order, monkeypatch):
        existing = make_order()
        monkeypatch.setattr(
            Order, "generate_order_number", staticmethod(lambda: existing.order_number)
        )
        with pytest.raises(RuntimeError):
            make_order()


class TestOrderDefaults:
    def test_new_order_is_pending(self, make_order):
        order = make_order()
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.is_paid is False


class TestCustomerEmail:
    def test_guest_email_wins(self, make_order):
        user = User.objects.create_user(username="u1", email="account@example.com")
        order = make_order(user=user, email="guest@example.com")
        assert order.customer_email == "guest@example.com"

    def test_falls_back_to_account_email(self, make_order):
        user = User.objects.create_user(username="u2", email="account@example.com")
        order = make_order(user=user, email="")
        assert order.customer_email == "account@example.com"

    def test_unusable_address_is_empty(self, make_order):
        order = make_order(email="not-an-address")
        assert order.customer_email == ""


class TestOrderItem:
    def test_line_total(self, make_order, make_variant):
        order = make_order([(make_variant(price="12.50"), 3)])
        assert order.items.get().line_total == Decimal("37.50")
