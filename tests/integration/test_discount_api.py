"""Integration tests for ``POST /api/discount/validate``."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.discounts.models import DiscountCode, DiscountType

pytestmark = pytest.mark.integration

URL = "/api/discount/validate"


class TestValidateDiscount:
    def test_valid_code(self, api_client):
        DiscountCode.objects.create(
            code="WELCOME", discount_type=DiscountType.PERCENTAGE, discount_amount=Decimal("15")
        )

        response = api_client.post(URL, {"code": "welcome", "subtotal": "200.00"}, format="json")

        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "WELCOME"
        assert Decimal(str(data["discount_amount"])) == Decimal("30.00")
        assert data["free_shipping"] is False
        assert DiscountCode.objects.get().usage_count == 0

    def test_unknown_code_is_404(self, api_client):
        response = api_client.post(URL, {"code": "NOPE", "subtotal": "10"}, format="json")

        assert response.status_code == 404
        assert response.json() == {"detail": "No discount code found"}

    def test_blank_code_is_400(self, api_client):
        response = api_client.post(URL, {"code": ""}, format="json")

        assert response.status_code == 400
        assert response.json() == {"detail": "Code is required"}

    def test_exhausted_code_is_400(self, api_client):
        DiscountCode.objects.create(
            code="ONCE", discount_amount=Decimal("10"), usage_limit=1, usage_count=1
        )

        response = api_client.post(URL, {"code": "ONCE", "subtotal": "10"}, format="json")

        assert response.status_code == 400
        assert response.json() == {"detail": "This code has reached its usage limit"}

    def test_needs_no_authentication(self, api_client):
        response = api_client.post(
            URL, {"code": "NOPE"}, format="json", HTTP_AUTHORIZATION="Bearer garbage"
        )
        assert response.status_code == 404
