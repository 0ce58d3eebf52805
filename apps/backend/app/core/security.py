"""
Password hashing and tenant-scoped access tokens.

Every access token names the user (``sub``) and the business profile the
user owns (``tid``). A token is only honoured while both still line up
with the database, so moving a user to another tenant invalidates the
tokens issued before the move.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from app.core.config import get_settings

TENANT_CLAIM = "tid"


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a valid access token."""

    user_id: UUID
    tenant_id: UUID


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def create_access_token(
    user_id: UUID,
    tenant_id: UUID,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token for a business owner.

    Args:
        user_id: The authenticated user.
        tenant_id: The tenant whose customers and segments the token unlocks.
        expires_delta: Optional custom expiry time.

    Returns:
        Encoded JWT token string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))

    to_encode = {
        "sub": str(user_id),
        TENANT_CLAIM: str(tenant_id),
        "exp": expire,
        "iat": now,
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenClaims | None:
    """
    Decode and validate a JWT access token.

    Returns:
        TokenClaims, or None if the token is invalid, expired, or does not
        carry both a user id and a tenant id.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    try:
        return TokenClaims(
            user_id=UUID(str(payload["sub"])),
            tenant_id=UUID(str(payload[TENANT_CLAIM])),
        )
    except (KeyError, ValueError):
        return None
