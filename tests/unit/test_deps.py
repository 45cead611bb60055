"""Unit tests for FastAPI dependency injection functions."""

import time

import jwt
import pytest
from fastapi import HTTPException

from src.api.deps import get_operator_grant
from src.services.access_gate import AccessGate

TEST_TOKEN_SECRET = "test-operator-secret-for-unit-tests-0123"


@pytest.fixture
def gate() -> AccessGate:
    """Create a gate with known credentials."""
    return AccessGate(passkey="harbour", token_secret=TEST_TOKEN_SECRET, token_ttl_seconds=600)


def create_test_token(role: str = "operator", exp_offset: int = 600) -> str:
    """Create a test operator token."""
    now = int(time.time())
    payload = {"sub": "operator", "role": role, "exp": now + exp_offset, "iat": now}
    return jwt.encode(payload, TEST_TOKEN_SECRET, algorithm="HS256")


class TestGetOperatorGrant:
    """Tests for get_operator_grant dependency."""

    @pytest.mark.asyncio
    async def test_valid_token_yields_grant(self, gate: AccessGate) -> None:
        """Test that a valid bearer token becomes an authorized grant."""
        grant = await get_operator_grant(gate, f"Bearer {create_test_token()}")

        assert grant.authorized
        grant.require()

    @pytest.mark.asyncio
    async def test_missing_header_returns_401(self, gate: AccessGate) -> None:
        """Test that a missing header is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_operator_grant(gate, "")

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_malformed_header_returns_401(self, gate: AccessGate) -> None:
        """Test that a non-bearer scheme is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_operator_grant(gate, f"Basic {create_test_token()}")

        assert exc_info.value.status_code == 401
        assert "Expected: Bearer" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_expired_token_returns_401(self, gate: AccessGate) -> None:
        """Test that expired tokens are rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_operator_grant(gate, f"Bearer {create_test_token(exp_offset=-60)}")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Operator session has expired"

    @pytest.mark.asyncio
    async def test_wrong_role_returns_401(self, gate: AccessGate) -> None:
        """Test that tokens without the operator role are rejected."""
        with pytest.raises(HTTPException) as exc_info:
            await get_operator_grant(gate, f"Bearer {create_test_token(role='customer')}")

        assert exc_info.value.status_code == 401
