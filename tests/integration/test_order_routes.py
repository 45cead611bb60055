"""Integration tests for checkout and customer order endpoints."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from src.core.memory_store import InMemoryDocumentStore

BASKET = {
    "items": [
        {"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": 1.5, "cleaning": True},
        {"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": 1.0, "cleaning": False},
    ]
}


def _checkout(client: TestClient, phone: str = "9876543210", basket: dict = BASKET):
    return client.post(
        "/api/v1/checkout",
        json={
            "customer_name": "Anu",
            "phone_number": phone,
            "delivery_address": "12 Harbour Road",
            "basket": basket,
        },
    )


def _events(body: str) -> list[tuple[str, dict]]:
    events = []
    for frame in body.strip().split("\n\n"):
        lines = frame.splitlines()
        name = lines[0].removeprefix("event: ")
        data = "\n".join(line.removeprefix("data: ") for line in lines[1:])
        events.append((name, json.loads(data)))
    return events


class TestCheckout:
    """Tests for POST /api/v1/checkout."""

    def test_checkout_creates_order(self, client: TestClient) -> None:
        """Test that a valid checkout returns the stored order."""
        response = _checkout(client)

        assert response.status_code == 201
        data = response.json()
        assert data["id"]
        assert data["order_status"] == "NEW"
        assert data["payment_method"] == "Cash on Delivery"
        assert data["total_amount"] == 1.5 * 230.0 + 200.0
        assert len(data["items"]) == 2
        assert data["created_at"] is not None

    def test_empty_basket_is_rejected(self, client: TestClient, memory_store: InMemoryDocumentStore) -> None:
        """Test that an empty basket returns 422 and stores nothing."""
        response = _checkout(client, basket={"items": []})

        assert response.status_code == 422
        assert response.json()["message"] == "Your basket is empty"
        assert client.portal.call(memory_store.query, "orders") == []

    def test_invalid_phone_is_rejected_with_field_detail(self, client: TestClient) -> None:
        """Test that the invalid field is reported in details."""
        response = _checkout(client, phone="12345")

        assert response.status_code == 422
        details = response.json()["details"]
        assert details[0]["loc"] == ["phone_number"]

    def test_store_outage_returns_retryable_503(self, client: TestClient, memory_store: InMemoryDocumentStore) -> None:
        """Test that a failed write surfaces as a retryable error."""
        memory_store.inject_failure("insert")

        response = _checkout(client)

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "store_unavailable"
        assert data["details"][0]["type"] == "retryable"

    @pytest.mark.parametrize("quantity", [0.2, 0.04])
    def test_quantity_below_smallest_unit_is_rejected(
        self,
        client: TestClient,
        memory_store: InMemoryDocumentStore,
        quantity: float,
    ) -> None:
        """Test that a hand-edited basket cannot order less than half a unit."""
        basket = {
            "items": [
                {"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": quantity}
            ]
        }

        response = _checkout(client, basket=basket)

        assert response.status_code == 422
        assert response.json()["details"][0]["loc"] == ["basket", "items", 0, "quantity"]
        assert client.portal.call(memory_store.query, "orders") == []

    def test_non_finite_quantity_is_rejected(self, client: TestClient, memory_store: InMemoryDocumentStore) -> None:
        """Test that an overflowing quantity never reaches the store."""
        body = (
            '{"customer_name": "Anu", "phone_number": "9876543210", "delivery_address": "12 Harbour Road",'
            ' "basket": {"items": [{"product_id": "prod-seer", "fish_name": "Seer Fish",'
            ' "price_per_kg": 200.0, "quantity": 1e999}]}}'
        )

        response = client.post("/api/v1/checkout", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 422
        assert client.portal.call(memory_store.query, "orders") == []

    def test_catalog_price_change_does_not_touch_placed_order(
        self,
        client: TestClient,
        memory_store: InMemoryDocumentStore,
        seed,
        sample_product: dict,
    ) -> None:
        """Test that an order keeps the prices captured when it was placed."""
        seed("products", sample_product["id"], {k: v for k, v in sample_product.items() if k != "id"})
        basket = client.post("/api/v1/basket/add", json={"product_id": "prod-seer", "cleaning": True}).json()
        order = _checkout(client, basket={"items": basket["items"]}).json()

        client.portal.call(memory_store.update, "products", "prod-seer", {"price_per_kg": 260.0})

        stored = client.portal.call(memory_store.get, "orders", order["id"])
        assert [item["price_per_kg"] for item in stored["items"]] == [200.0]
        assert stored["total_amount"] == 230.0
        assert client.get("/api/v1/products/prod-seer").json()["price_per_kg"] == 260.0
        assert client.get(f"/api/v1/orders/{order['id']}").json()["total_amount"] == 230.0


class TestLookup:
    """Tests for GET /api/v1/orders/lookup."""

    def test_returns_newest_order_for_phone(self, client: TestClient, seed) -> None:
        """Test that lookup picks the most recent order."""
        now = datetime.now(timezone.utc)
        seed("orders", "older", _order_doc(now - timedelta(days=1)))
        seed("orders", "newer", _order_doc(now))

        response = client.get("/api/v1/orders/lookup", params={"phone": "9876543210"})

        assert response.status_code == 200
        assert response.json()["id"] == "newer"

    def test_unknown_phone_returns_404(self, client: TestClient) -> None:
        """Test the not found message."""
        response = client.get("/api/v1/orders/lookup", params={"phone": "9876543210"})

        assert response.status_code == 404
        assert response.json()["message"] == "No orders found for this phone number"

    def test_blank_phone_returns_422(self, client: TestClient) -> None:
        """Test that a blank phone is rejected."""
        response = client.get("/api/v1/orders/lookup", params={"phone": "  "})

        assert response.status_code == 422


class TestGetOrder:
    """Tests for GET /api/v1/orders/{order_id}."""

    def test_get_order(self, client: TestClient) -> None:
        """Test that a created order can be read back."""
        order_id = _checkout(client).json()["id"]

        response = client.get(f"/api/v1/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_missing_order_returns_404(self, client: TestClient) -> None:
        """Test that an unknown id returns 404."""
        assert client.get("/api/v1/orders/missing").status_code == 404


class TestTrackOrder:
    """Tests for GET /api/v1/orders/{order_id}/events."""

    def test_missing_order_stream_sends_removed_and_ends(
        self,
        client: TestClient,
        memory_store: InMemoryDocumentStore,
    ) -> None:
        """Test that tracking a deleted order ends with a removed event."""
        response = client.get("/api/v1/orders/gone/events")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert _events(response.text) == [
            ("removed", {"order_id": "gone", "message": "This order was removed from our system."})
        ]
        assert memory_store.open_watches == 0


def _order_doc(created_at: datetime) -> dict:
    return {
        "customer_name": "Anu",
        "phone_number": "9876543210",
        "delivery_address": "12 Harbour Road",
        "items": BASKET["items"],
        "total_amount": 545.0,
        "payment_method": "Cash on Delivery",
        "order_status": "NEW",
        "created_at": created_at,
    }

