"""
JWT token utilities for authentication.

Access tokens carry the account id and the role it had when the token
was issued. Dependencies re-read the account on every request and
refuse tokens whose role no longer matches, so demoting an admin ends
their admin sessions.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from hauntq.config import get_settings
from hauntq.models import UserRole

settings = get_settings()

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    """Validated contents of an access token."""
    user_id: UUID
    role: str


def create_access_token(user_id: UUID, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for an account.

    Args:
        user_id: The account's UUID
        role: The account's current role
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string
    """
    issued_at = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    return jwt.encode(
        {
            "sub": str(user_id),
            "role": role,
            "type": TOKEN_TYPE,
            "iss": settings.app_name,
            "iat": issued_at,
            "exp": issued_at + expires_delta,
        },
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[AccessClaims]:
    """
    Decode and validate an access token.

    Signature, expiry and issuer are checked by jose; the token type and
    role must be ones this service issues.

    Returns:
        The token's claims if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.app_name,
        )
        if payload.get("type") != TOKEN_TYPE:
            return None
        return AccessClaims(
            user_id=UUID(payload["sub"]),
            role=UserRole(payload["role"]).value,
        )
    except (JWTError, KeyError, ValueError):
        return None
