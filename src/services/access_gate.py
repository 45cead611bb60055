"""Operator access gate and session tokens."""

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any

import jwt

from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.core.config import get_settings

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
OPERATOR_ROLE = "operator"


@dataclass(frozen=True)
class OperatorGrant:
    """Proof that the caller passed the operator access gate.

    Passed explicitly to the lifecycle controller and retention sweeper.
    """

    authorized: bool
    subject: str = OPERATOR_ROLE
    expires_at: int | None = None

    def require(self) -> None:
        """Raise unless this grant authorizes operator actions."""
        if not self.authorized:
            raise AuthorizationError("Operator access required")
        if self.expires_at is not None and self.expires_at <= int(time.time()):
            raise AuthorizationError("Operator session has expired")


DENIED = OperatorGrant(authorized=False)


class AccessGate:
    """Checks the operator passkey and issues signed session tokens."""

    def __init__(
        self,
        passkey: str | None = None,
        token_secret: str | None = None,
        token_ttl_seconds: int | None = None,
    ) -> None:
        settings = get_settings()
        self.passkey = passkey if passkey is not None else settings.operator_passkey
        self.token_secret = token_secret or settings.operator_token_secret
        self.token_ttl_seconds = token_ttl_seconds or settings.operator_token_ttl_seconds

    def authorize(self, passkey: str) -> OperatorGrant:
        """Exchange a passkey for an operator grant.

        Raises:
            AuthenticationError: If the passkey is wrong.
        """
        if not self.passkey or not hmac.compare_digest(passkey.encode(), self.passkey.encode()):
            logger.warning("Rejected operator passkey")
            raise AuthenticationError("Invalid passkey")
        return OperatorGrant(
            authorized=True,
            expires_at=int(time.time()) + self.token_ttl_seconds,
        )

    def issue_token(self, grant: OperatorGrant) -> str:
        """Sign a session token carrying the grant."""
        grant.require()
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": grant.subject,
            "role": OPERATOR_ROLE,
            "iat": now,
            "exp": grant.expires_at or now + self.token_ttl_seconds,
        }
        return jwt.encode(payload, self.token_secret, algorithm=TOKEN_ALGORITHM)

    def verify_token(self, token: str) -> OperatorGrant:
        """Decode a session token back into a grant.

        Raises:
            AuthenticationError: If the token is invalid or expired.
        """
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.token_secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Operator session has expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid operator token: {e}") from e

        if payload.get("role") != OPERATOR_ROLE:
            raise AuthenticationError("Token does not carry operator role")

        return OperatorGrant(
            authorized=True,
            subject=payload["sub"],
            expires_at=payload["exp"],
        )
