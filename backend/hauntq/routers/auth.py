"""
Authentication API endpoints.

Accounts are provisioned by an admin (see scripts/seed_data.py); there is
no self-service registration.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hauntq.auth.dependencies import get_current_user
from hauntq.auth.jwt import create_access_token
from hauntq.auth.password import verify_password
from hauntq.database import get_db
from hauntq.models import User
from hauntq.schemas.auth import TokenResponse, UserLogin, UserResponse
from hauntq.utils.timezone import utc_now

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    data: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    """
    Login with email and password.

    Returns an access token on successful login.
    """
    # Find user by email
    result = await db.execute(
        select(User).where(User.email == data.email.lower())
    )
    user = result.scalar_one_or_none()

    # Verify user exists and password is correct
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )

    # Update last seen
    user.last_seen_at = utc_now()

    access_token = create_access_token(user.id, user.role)

    return TokenResponse(
        access_token=access_token,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
):
    """
    Get the current authenticated user's profile.

    Requires a valid access token in the Authorization header.
    """
    return UserResponse.model_validate(current_user)
