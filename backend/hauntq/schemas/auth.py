"""
Pydantic schemas for authentication endpoints.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


# Request schemas

class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


# Response schemas

class UserResponse(BaseModel):
    """Schema for user data in responses."""
    id: UUID
    email: str
    display_name: Optional[str]
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for authentication token response."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
