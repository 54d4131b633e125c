"""Integration tests for payment API endpoints."""

from typing import Any, Callable

import httpx
from fastapi.testclient import TestClient

from src.core.liqpay import LiqPayClient


class TestStartPayment:
    """Tests for POST /api/v1/payments endpoint."""

    def test_starts_liqpay_payment(self, client: TestClient, sample_order: dict) -> None:
        response = client.post("/api/v1/payments", json={"order_id": sample_order["id"], "method": "liqpay"})

        assert response.status_code == 201
        body = response.json()
        assert body["created"] is True
        assert body["payment"]["status"] == "pending"
        assert body["payment"]["amount"] == 150050
        assert body["checkout_url"].startswith("https://www.liqpay.ua/api/3/checkout")

    def test_rejects_unknown_method(self, client: TestClient, sample_order: dict) -> None:
        response = client.post("/api/v1/payments", json={"order_id": sample_order["id"], "method": "bitcoin"})

        assert response.status_code == 422

    def test_unknown_order(self, client: TestClient) -> None:
        response = client.post("/api/v1/payments", json={"order_id": "missing", "method": "cod"})

        assert response.status_code == 404

    def test_closed_order(self, client: TestClient, seeded_db: Any, sample_order: dict) -> None:
        seeded_db.rows("orders")[0]["status"] = "refunded"

        response = client.post("/api/v1/payments", json={"order_id": sample_order["id"], "method": "cod"})

        assert response.status_code == 409


class TestGetPayment:
    """Tests for GET /api/v1/payments/orders/{order_id} endpoint."""

    def test_returns_payment(
        self, client: TestClient, seeded_db: Any, add_payment_row: Callable, sample_order: dict
    ) -> None:
        add_payment_row(seeded_db, provider="cod")

        response = client.get(f"/api/v1/payments/orders/{sample_order['id']}")

        assert response.status_code == 200
        assert response.json()["provider"] == "cod"

    def test_no_payment(self, client: TestClient, sample_order: dict) -> None:
        response = client.get(f"/api/v1/payments/orders/{sample_order['id']}")

        assert response.status_code == 404


class TestCheckStatus:
    """Tests for POST /api/v1/payments/orders/{order_id}/check-status endpoint."""

    def test_gateway_down_returns_502(
        self,
        client: TestClient,
        payment_service: Any,
        seeded_db: Any,
        add_payment_row: Callable,
        sample_order: dict,
        test_settings: Any,
    ) -> None:
        add_payment_row(seeded_db)
        payment_service.liqpay = LiqPayClient(
            public_key=test_settings.liqpay_public_key,
            private_key=test_settings.liqpay_private_key,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
        )

        response = client.post(f"/api/v1/payments/orders/{sample_order['id']}/check-status")

        assert response.status_code == 502
        assert response.json()["error"] == "external_service_error"


class TestRefund:
    """Tests for POST /api/v1/payments/orders/{order_id}/refund endpoint."""

    def test_requires_authentication(self, client: TestClient, sample_order: dict) -> None:
        response = client.post(f"/api/v1/payments/orders/{sample_order['id']}/refund")

        assert response.status_code == 401

    def test_requires_admin(self, client: TestClient, sample_order: dict, make_token: Callable) -> None:
        response = client.post(
            f"/api/v1/payments/orders/{sample_order['id']}/refund",
            headers={"Authorization": f"Bearer {make_token(role=None)}"},
        )

        assert response.status_code == 403

    def test_refunds_cash_on_delivery(
        self,
        client: TestClient,
        seeded_db: Any,
        add_payment_row: Callable,
        sample_order: dict,
        admin_headers: dict,
    ) -> None:
        add_payment_row(seeded_db, provider="cod", status="completed")

        response = client.post(f"/api/v1/payments/orders/{sample_order['id']}/refund", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["payment"]["status"] == "refunded"
        assert response.json()["order_status"] == "refunded"

    def test_pending_payment_returns_409(
        self,
        client: TestClient,
        seeded_db: Any,
        add_payment_row: Callable,
        sample_order: dict,
        admin_headers: dict,
    ) -> None:
        add_payment_row(seeded_db)

        response = client.post(f"/api/v1/payments/orders/{sample_order['id']}/refund", headers=admin_headers)

        assert response.status_code == 409
