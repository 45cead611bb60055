"""Integration tests for basket API endpoints."""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def catalog(seed, sample_products: list[dict]) -> list[dict]:
    """Seed the products table."""
    for product in sample_products:
        seed("products", product["id"], {k: v for k, v in product.items() if k != "id"})
    return sample_products


class TestAddToBasket:
    """Tests for POST /api/v1/basket/add."""

    def test_add_creates_slot_with_current_price(self, client: TestClient, catalog: list[dict]) -> None:
        """Test that adding a product captures its name and price."""
        response = client.post("/api/v1/basket/add", json={"product_id": "prod-seer"})

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == [
            {
                "product_id": "prod-seer",
                "fish_name": "Seer Fish",
                "price_per_kg": 200.0,
                "quantity": 1.0,
                "cleaning": False,
            }
        ]
        assert data["total"] == 200.0
        assert data["unit_count"] == 1.0

    def test_add_merges_same_variant_and_splits_cleaned(self, client: TestClient, catalog: list[dict]) -> None:
        """Test slot identity across successive requests."""
        basket = {"items": []}
        for cleaning in (False, True, False):
            response = client.post(
                "/api/v1/basket/add",
                json={"basket": basket, "product_id": "prod-seer", "cleaning": cleaning},
            )
            basket = {"items": response.json()["items"]}

        data = response.json()
        assert [(i["cleaning"], i["quantity"]) for i in data["items"]] == [(False, 2.0), (True, 1.0)]
        assert data["total"] == 2 * 200.0 + (200.0 + 30.0)

    def test_add_unavailable_product_is_rejected(self, client: TestClient, catalog: list[dict]) -> None:
        """Test that unavailable products cannot be added."""
        response = client.post("/api/v1/basket/add", json={"product_id": "prod-pomfret"})

        assert response.status_code == 422
        assert response.json()["message"] == "Product is no longer available"

    def test_add_unknown_product_is_not_found(self, client: TestClient, catalog: list[dict]) -> None:
        """Test that unknown products return 404."""
        response = client.post("/api/v1/basket/add", json={"product_id": "prod-unknown"})

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestSlotOperations:
    """Tests for adjust, toggle-cleaning, remove and clear."""

    @pytest.fixture
    def basket(self) -> dict:
        """A basket holding both variants of one product."""
        return {
            "items": [
                {"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": 1.0, "cleaning": False},
                {"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": 2.0, "cleaning": True},
            ]
        }

    def test_adjust_clamps_to_minimum(self, client: TestClient, basket: dict) -> None:
        """Test that a large negative delta leaves half a unit."""
        response = client.post(
            "/api/v1/basket/adjust",
            json={"basket": basket, "product_id": "prod-seer", "cleaning": True, "delta": -10},
        )

        assert response.status_code == 200
        assert response.json()["items"][1]["quantity"] == 0.5
        assert response.json()["items"][0]["quantity"] == 1.0

    def test_adjust_missing_slot_is_not_found(self, client: TestClient) -> None:
        """Test that adjusting a slot that is not in the basket returns 404."""
        response = client.post(
            "/api/v1/basket/adjust",
            json={"basket": {"items": []}, "product_id": "prod-seer", "delta": 1},
        )

        assert response.status_code == 404

    def test_toggle_flips_in_place(self, client: TestClient, basket: dict) -> None:
        """Test that toggling keeps both slots and their order."""
        response = client.post(
            "/api/v1/basket/toggle-cleaning",
            json={"basket": basket, "product_id": "prod-seer", "cleaning": False},
        )

        items = response.json()["items"]
        assert [(i["cleaning"], i["quantity"]) for i in items] == [(True, 1.0), (True, 2.0)]

    def test_remove_only_matching_variant(self, client: TestClient, basket: dict) -> None:
        """Test that remove drops one slot and ignores absent ones."""
        response = client.post(
            "/api/v1/basket/remove",
            json={"basket": basket, "product_id": "prod-seer", "cleaning": True},
        )
        assert [i["cleaning"] for i in response.json()["items"]] == [False]

        again = client.post(
            "/api/v1/basket/remove",
            json={"basket": {"items": response.json()["items"]}, "product_id": "prod-seer", "cleaning": True},
        )
        assert again.status_code == 200
        assert len(again.json()["items"]) == 1

    def test_clear(self, client: TestClient, basket: dict) -> None:
        """Test that clear empties the basket."""
        response = client.post("/api/v1/basket/clear", json={"basket": basket})

        assert response.json() == {"items": [], "total": 0.0, "unit_count": 0.0}

    def test_invalid_quantity_is_rejected(self, client: TestClient) -> None:
        """Test that non-positive quantities fail request validation."""
        response = client.post(
            "/api/v1/basket/clear",
            json={"basket": {"items": [{"product_id": "p", "fish_name": "P", "price_per_kg": 1, "quantity": 0}]}},
        )

        assert response.status_code == 422
