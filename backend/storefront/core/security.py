"""
JWT verification for identity provider tokens.

Sessions are issued by an external identity provider that signs bearer
tokens with a shared secret. This module verifies those tokens and exposes
their claims; ``create_access_token`` mints tokens with the same layout for
local development and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


def create_access_token(
    subject: str,
    role: str,
    settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None,
    **claims: Any,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: User identifier stored in the ``sub`` claim
        role: User role stored in the ``role`` claim
        settings: Settings providing the signing key and algorithm
        expires_delta: Optional custom lifetime
        **claims: Additional claims to embed

    Returns:
        Encoded JWT token string
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        **claims,
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": expire,
        "type": "access",
    }

    token = jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)

    logger.debug(
        "Access token created",
        subject=subject,
        role=role,
        expires_at=expire.isoformat(),
    )

    return token


def decode_token(token: str, settings: Optional[Settings] = None) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string to decode
        settings: Settings providing the verification key and algorithm

    Returns:
        Dictionary of decoded token claims

    Raises:
        TokenError: If token is empty, expired, malformed or not an access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = settings or get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired", error=str(e))
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError("Invalid token", code="TOKEN_INVALID") from e

    if payload.get("type", "access") != "access":
        logger.warning("Token type mismatch", actual=payload.get("type"))
        raise TokenError("Access token required", code="TOKEN_TYPE_MISMATCH")

    logger.debug(
        "Token decoded successfully",
        subject=payload.get("sub"),
        role=payload.get("role"),
    )

    return payload
