"""User model - accounts that can sign in (admins and customers)."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class UserRole(str, Enum):
    """Account roles."""
    ADMIN = "admin"
    CUSTOMER = "customer"


class User(Base):
    """
    Sign-in account.

    Customer accounts are linked to their `Customer` record by email.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100))

    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.CUSTOMER.value,
        nullable=False,
    )

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
