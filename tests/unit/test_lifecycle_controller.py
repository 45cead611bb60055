"""Unit tests for LifecycleController."""

import asyncio
import time
from unittest.mock import patch

import pytest
import pytest_asyncio
from pydantic import ValidationError as PydanticValidationError

from src.api.middleware.error_handler import AuthorizationError, ConfirmationRequiredError, NotFoundError
from src.core.memory_store import InMemoryDocumentStore
from src.models.order import OPERATOR_STATUSES, OrderStatus
from src.schemas.operator import StatusUpdateRequest
from src.services.access_gate import DENIED, OperatorGrant
from src.services.lifecycle_controller import LifecycleController
from src.services.status_channel import OrderRemoved, StatusChannel


@pytest_asyncio.fixture
async def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """Store with one NEW order."""
    await store.set(
        "orders",
        "order-1",
        {
            "customer_name": "Anu",
            "phone_number": "9876543210",
            "delivery_address": "12 Harbour Road",
            "items": [{"product_id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "quantity": 1.0, "cleaning": False}],
            "total_amount": 200.0,
            "payment_method": "Cash on Delivery",
            "order_status": "NEW",
            "created_at": store.clock(),
        },
    )
    return store


@pytest.fixture
def controller(seeded_store: InMemoryDocumentStore, grant: OperatorGrant) -> LifecycleController:
    """Create a controller with an authorized grant."""
    return LifecycleController(grant, store=seeded_store, collection="orders")


class TestGrant:
    """Tests for access control."""

    def test_denied_grant_is_rejected(self, store: InMemoryDocumentStore) -> None:
        """Test that a controller cannot be built without an authorized grant."""
        with pytest.raises(AuthorizationError):
            LifecycleController(DENIED, store=store)

    @pytest.mark.asyncio
    async def test_expired_grant_is_rejected_on_write(self, seeded_store: InMemoryDocumentStore) -> None:
        """Test that a grant that expires after construction stops further writes."""
        grant = OperatorGrant(authorized=True, expires_at=int(time.time()) + 1)
        controller = LifecycleController(grant, store=seeded_store, collection="orders")
        with patch("src.services.access_gate.time") as mock_time:
            mock_time.time.return_value = time.time() + 60
            with pytest.raises(AuthorizationError):
                await controller.set_status("order-1", "CONFIRMED")


class TestSetStatus:
    """Tests for status transitions."""

    @pytest.mark.asyncio
    async def test_writes_only_status(self, controller: LifecycleController, seeded_store: InMemoryDocumentStore) -> None:
        """Test that items and total are untouched by a status write."""
        before = await seeded_store.get("orders", "order-1")

        updated = await controller.set_status("order-1", "OUT_FOR_DELIVERY")

        assert updated["order_status"] == "OUT_FOR_DELIVERY"
        assert updated["items"] == before["items"]
        assert updated["total_amount"] == before["total_amount"]
        assert updated["created_at"] == before["created_at"]

    @pytest.mark.asyncio
    async def test_any_status_may_follow_any_other(self, controller: LifecycleController) -> None:
        """Test that transitions are unconstrained, including going backwards."""
        await controller.set_status("order-1", "DELIVERED")
        updated = await controller.set_status("order-1", "CONFIRMED")

        assert updated["order_status"] == "CONFIRMED"

    @pytest.mark.asyncio
    async def test_unknown_status_is_rejected(self, controller: LifecycleController) -> None:
        """Test that values outside the lifecycle are refused."""
        with pytest.raises(ValueError):
            await controller.set_status("order-1", "SHIPPED")

    @pytest.mark.asyncio
    async def test_missing_order_is_not_found(self, controller: LifecycleController) -> None:
        """Test that updating a deleted order does not recreate it."""
        with pytest.raises(NotFoundError):
            await controller.set_status("missing", "CONFIRMED")

    @pytest.mark.asyncio
    async def test_concurrent_writes_are_last_write_wins(self, controller: LifecycleController) -> None:
        """Test that concurrent writes leave one of the written values in place."""
        await asyncio.gather(
            controller.set_status("order-1", "CONFIRMED"),
            controller.set_status("order-1", "DELIVERED"),
        )

        order = await controller.get_order("order-1")
        assert order["order_status"] in ("CONFIRMED", "DELIVERED")


class TestDeleteOrder:
    """Tests for order deletion."""

    @pytest.mark.asyncio
    async def test_requires_confirmation(self, controller: LifecycleController, seeded_store: InMemoryDocumentStore) -> None:
        """Test that an unconfirmed delete leaves the order in place."""
        with pytest.raises(ConfirmationRequiredError):
            await controller.delete_order("order-1")

        assert await seeded_store.get("orders", "order-1") is not None

    @pytest.mark.asyncio
    async def test_delete_notifies_tracker(self, controller: LifecycleController, seeded_store: InMemoryDocumentStore) -> None:
        """Test that a tracker of the deleted order receives the removal signal."""
        tracker = await StatusChannel(store=seeded_store, collection="orders").track_order("order-1")
        await asyncio.wait_for(tracker.__anext__(), timeout=1)

        assert await controller.delete_order("order-1", confirmed=True) is True

        update = await asyncio.wait_for(tracker.__anext__(), timeout=1)
        assert isinstance(update, OrderRemoved)

    @pytest.mark.asyncio
    async def test_deleting_absent_order_returns_false(self, controller: LifecycleController) -> None:
        """Test that deleting twice is harmless."""
        assert await controller.delete_order("order-1", confirmed=True) is True
        assert await controller.delete_order("order-1", confirmed=True) is False


class TestStatusUpdateRequest:
    """Tests for the operator status request body."""

    @pytest.mark.parametrize("status", [status.value for status in OPERATOR_STATUSES])
    def test_operator_statuses_are_accepted(self, status: str) -> None:
        """Test that every operator action status validates."""
        assert StatusUpdateRequest(order_status=status).order_status == OrderStatus(status)

    @pytest.mark.parametrize("status", ["NEW", "CANCELLED"])
    def test_other_statuses_are_rejected(self, status: str) -> None:
        """Test that NEW and unknown values cannot be set by the operator."""
        with pytest.raises(PydanticValidationError):
            StatusUpdateRequest(order_status=status)
