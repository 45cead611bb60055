"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.error_handler import AuthenticationError
from src.services.access_gate import AccessGate, OperatorGrant
from src.services.basket import BasketPolicy


def get_access_gate() -> AccessGate:
    """Provide the operator access gate."""
    return AccessGate()


def get_basket_policy() -> BasketPolicy:
    """Provide basket quantity and pricing rules from settings."""
    return BasketPolicy.from_settings()


async def get_operator_grant(
    gate: Annotated[AccessGate, Depends(get_access_gate)],
    authorization: Annotated[str, Header(description="Bearer operator token")] = "",
) -> OperatorGrant:
    """Extract and validate the operator grant from the Authorization header.

    Args:
        gate: Access gate used to verify the token.
        authorization: The Authorization header value (Bearer token).

    Returns:
        OperatorGrant: The grant passed on to operator services.

    Raises:
        HTTPException: 401 if the token is missing, malformed, invalid or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return gate.verify_token(parts[1])
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


# Type aliases for cleaner dependency injection
OperatorAuth = Annotated[OperatorGrant, Depends(get_operator_grant)]
Gate = Annotated[AccessGate, Depends(get_access_gate)]
Policy = Annotated[BasketPolicy, Depends(get_basket_policy)]
