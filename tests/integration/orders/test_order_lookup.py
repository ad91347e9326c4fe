"""Integration tests for ``GET /api/orders/by-order-number``."""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.integration

URL = "/api/orders/by-order-number"


class TestGuestLookup:
    def test_matching_email_returns_summary(self, api_client, make_order):
        order = make_order()

        response = api_client.get(
            URL, {"order_number": order.order_number, "email": "GUEST@example.com"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order_number"] == order.order_number
        assert data["total"] == "103.50"
        assert data["payment_status"] == "PENDING"
        assert "email" not in data

    def test_wrong_email_looks_like_missing_order(self, api_client, make_order):
        order = make_order()

        response = api_client.get(
            URL, {"order_number": order.order_number, "email": "other@example.com"}
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Order not found"}

    def test_unknown_number(self, api_client):
        response = api_client.get(
            URL, {"order_number": "PL-0000000000000-0000", "email": "guest@example.com"}
        )
        assert response.status_code == 404

    def test_order_number_required(self, api_client):
        response = api_client.get(URL)

        assert response.status_code == 400
        assert response.json()["errors"][0]["attr"] == "order_number"


class TestAccountLookup:
    def test_owner_needs_no_email(self, api_client, make_order, buyer):
        order = make_order(user=buyer, email="")
        api_client.force_authenticate(user=buyer)

        response = api_client.get(URL, {"order_number": order.order_number})

        assert response.status_code == 200
        assert response.json()["id"] == str(order.id)

    def test_other_account_cannot_see_order(self, api_client, make_order, buyer, staff_user):
        order = make_order(user=buyer, email="")
        api_client.force_authenticate(user=staff_user)

        response = api_client.get(URL, {"order_number": order.order_number})

        assert response.status_code == 404
