"""Reservation model - a group hold over several spots of a queue."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class ReservationStatus(str, Enum):
    """Possible states of a reservation."""
    ACTIVE = "active"
    COMPLETED = "completed"  # Every spot claimed
    EXPIRED = "expired"  # Deadline passed before the group filled up
    CANCELLED = "cancelled"  # Representative left or an admin cancelled


class Reservation(Base):
    """
    Group reservation created by a representative.

    Holds `max_spots` spots of one queue until `expires_at`. Other
    customers join with the shareable `code`; `current_spots` counts the
    members (representative included) who have claimed a spot.
    """

    __tablename__ = "reservations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    queue_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("queues.id"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    representative_customer_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("customers.student_id"),
        nullable=False,
    )

    max_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    current_spots: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ReservationStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )

    # Relationships
    queue: Mapped["Queue"] = relationship("Queue", back_populates="reservations")
    representative: Mapped["Customer"] = relationship("Customer")
    spots: Mapped[list["QueueSpot"]] = relationship(
        "QueueSpot",
        back_populates="reservation",
        order_by="QueueSpot.spot_number",
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.code} {self.current_spots}/{self.max_spots} ({self.status})>"

    @property
    def is_full(self) -> bool:
        return self.current_spots >= self.max_spots
