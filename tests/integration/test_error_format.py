"""Integration tests for standardized error responses.

Framework errors use the ``{"type", "errors"}`` envelope; domain errors
raised by services come back as ``{"detail": ...}``.
"""

import uuid

import pytest

pytestmark = pytest.mark.integration


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client):
        response = api_client.patch(
            f"/api/admin/orders/{uuid.uuid4()}", {"status": "SHIPPED"}, format="json"
        )
        assert response.status_code == 401
        data = response.json()
        assert data["type"] == "client_error"
        assert isinstance(data["errors"], list)
        assert data["errors"]
        assert "code" in data["errors"][0]
        assert "detail" in data["errors"][0]

    def test_parse_error_has_standard_format(self, api_client):
        response = api_client.post(
            "/api/orders/create-venmo", data="{", content_type="application/json"
        )
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "client_error"
        assert isinstance(data["errors"], list)

    def test_validation_error_names_the_field(self, api_client):
        response = api_client.post(
            "/api/orders/create-venmo", {"items": []}, format="json"
        )
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        attrs = {error["attr"] for error in data["errors"]}
        assert "items" in attrs
        assert "shipping_info" in attrs

    def test_domain_error_uses_detail(self, api_client):
        response = api_client.post(
            "/api/discount/validate", {"code": "NOPE", "subtotal": "10.00"}, format="json"
        )
        assert response.status_code == 404
        assert response.json() == {"detail": "No discount code found"}
