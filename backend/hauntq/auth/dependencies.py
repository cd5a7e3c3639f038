"""
Authentication dependencies for FastAPI.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hauntq.auth.jwt import decode_access_token
from hauntq.config import get_settings
from hauntq.database import get_db
from hauntq.models import Customer, User, UserRole
from hauntq.services.results import ERROR_MESSAGES, ErrorCode

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, token: str) -> Optional[User]:
    claims = decode_access_token(token)
    if claims is None:
        return None
    result = await db.execute(
        select(User).where(
            User.id == claims.user_id,
            User.role == claims.role,
            User.is_active == True,
        )
    )
    return result.scalar_one_or_none()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    Raises 401 if not authenticated or token is invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "code": ErrorCode.SESSION_VERIFICATION_FAILED.value,
            "message": ERROR_MESSAGES[ErrorCode.SESSION_VERIFICATION_FAILED],
        },
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    user = await _load_user(db, credentials.credentials)
    if user is None:
        raise credentials_exception

    return user


async def verify_admin_access(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_admin_api_key: Optional[str] = Header(None, alias="X-Admin-API-Key"),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Verify admin access via either:
    1. Authenticated user with the admin role
    2. Valid X-Admin-API-Key header

    Returns the admin user if authenticated via JWT, None if via API key.
    Raises 403 if neither method succeeds.
    """
    settings = get_settings()

    # Method 1: Check API key
    if x_admin_api_key:
        expected = settings.admin_api_key
        if expected and hmac.compare_digest(x_admin_api_key.encode(), expected.encode()):
            return None  # Valid API key, no user context
        # Invalid API key - don't fall through, reject immediately
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": ErrorCode.UNAUTHORIZED.value, "message": "Invalid admin API key"},
        )

    # Method 2: Check authenticated admin user
    if credentials:
        user = await _load_user(db, credentials.credentials)
        if user and user.is_admin:
            return user

    # Neither method succeeded
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "code": ErrorCode.UNAUTHORIZED.value,
            "message": "Admin access required. Provide valid admin credentials or X-Admin-API-Key header.",
        },
    )


async def get_current_customer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Customer:
    """
    Get the customer record behind the signed-in customer account.

    The account is linked to its customer by email. Admin accounts,
    accounts without a customer record and customers holding an
    unsupported ticket type are rejected with 403.
    """
    forbidden = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "code": ErrorCode.UNAUTHORIZED.value,
            "message": "Customer access required",
        },
    )

    if user.role != UserRole.CUSTOMER.value:
        raise forbidden

    result = await db.execute(
        select(Customer).where(func.lower(Customer.email) == user.email.lower())
    )
    customer = result.scalars().first()
    if customer is None:
        raise forbidden

    if customer.ticket_type in get_settings().unsupported_ticket_types:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": ErrorCode.UNAUTHORIZED.value,
                "message": "Your ticket type does not include a haunted house slot",
            },
        )

    return customer
