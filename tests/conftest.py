"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DOCUMENT_STORE_BACKEND", "memory")
os.environ.setdefault("OPERATOR_PASSKEY", "test-passkey")
os.environ.setdefault("OPERATOR_TOKEN_SECRET", "test-operator-token-secret-0123456789")

from src.core.memory_store import InMemoryDocumentStore  # noqa: E402
from src.core.store import set_document_store  # noqa: E402
from src.services.access_gate import OperatorGrant  # noqa: E402

TEST_PASSKEY = os.environ["OPERATOR_PASSKEY"]

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock for server timestamps."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest_asyncio.fixture
async def store(clock: FakeClock) -> AsyncGenerator[InMemoryDocumentStore, None]:
    """Provide an in-memory document store and close its watches afterwards."""
    memory_store = InMemoryDocumentStore(clock=clock)
    yield memory_store
    await memory_store.close()


@pytest.fixture
def grant() -> OperatorGrant:
    """Provide an authorized operator grant."""
    return OperatorGrant(authorized=True)


@pytest.fixture
def sample_product() -> dict:
    """Create a sample product document."""
    return {
        "id": "prod-seer",
        "fish_name": "Seer Fish",
        "price_per_kg": 200.0,
        "available": True,
        "is_premium": True,
    }


@pytest.fixture
def sample_products() -> list[dict]:
    """Create a small catalog."""
    return [
        {"id": "prod-seer", "fish_name": "Seer Fish", "price_per_kg": 200.0, "available": True, "is_premium": True},
        {"id": "prod-mackerel", "fish_name": "Mackerel", "price_per_kg": 150.0, "available": True, "is_premium": False},
        {"id": "prod-anchovy", "fish_name": "Anchovy", "price_per_kg": 120.0, "available": True, "is_premium": False},
        {"id": "prod-pomfret", "fish_name": "Pomfret", "price_per_kg": 600.0, "available": False, "is_premium": True},
    ]


@pytest.fixture
def memory_store() -> Generator[InMemoryDocumentStore, None, None]:
    """Install an in-memory store as the process-wide store for route tests."""
    route_store = InMemoryDocumentStore()
    set_document_store(route_store)
    yield route_store
    set_document_store(None)


@pytest.fixture
def client(memory_store: InMemoryDocumentStore) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        memory_store: In-memory store picked up by the app lifespan.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def operator_headers(client: TestClient) -> dict[str, str]:
    """Authorization headers for operator routes."""
    response = client.post("/api/v1/operator/session", json={"passkey": TEST_PASSKEY})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def seed(client: TestClient, memory_store: InMemoryDocumentStore) -> Callable[[str, str, dict], dict]:
    """Write a document into the app's store on the app's event loop."""

    def write(collection: str, doc_id: str, data: dict) -> dict:
        return client.portal.call(memory_store.set, collection, doc_id, data)

    return write
