"""Security utilities."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from src.core.config import settings
from src.core.logging import get_logger, log_security_event

logger = get_logger(__name__)


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be verified."""


def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode = {"exp": expire, "sub": str(subject)}
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm,
    )
    return encoded_jwt


def verify_access_token(token: str) -> str:
    """
    Verify a JWT access token and return the caller identity.

    Args:
        token: Encoded JWT taken from the Authorization header

    Returns:
        The token subject, used as the caller's user id

    Raises:
        InvalidTokenError: If the token is malformed, expired, or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError as e:
        log_security_event(
            logger,
            "Token verification failed",
            details={"reason": type(e).__name__},
        )
        raise InvalidTokenError(str(e)) from e

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        log_security_event(
            logger,
            "Token verification failed: missing subject",
            details={"reason": "missing_sub"},
        )
        raise InvalidTokenError("Token has no subject")

    return subject
