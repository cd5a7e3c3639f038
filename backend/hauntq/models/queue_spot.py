"""QueueSpot model - one claimable place in a queue."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class SpotStatus(str, Enum):
    """Lifecycle states of a spot."""
    AVAILABLE = "available"
    OCCUPIED = "occupied"  # Claimed directly, no reservation
    RESERVED = "reserved"  # Held for a reservation, claimed or not


class QueueSpot(Base):
    """
    A single place in a queue.

    State rules:
    - available: no customer, no reservation
    - occupied: customer set, no reservation
    - reserved: reservation set, customer optional (member joined or not)

    `customer_id` is unique so a customer can never hold two spots.
    """

    __tablename__ = "queue_spots"
    __table_args__ = (
        UniqueConstraint("queue_id", "spot_number", name="uq_spot_queue_number"),
    )

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
    spot_number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=SpotStatus.AVAILABLE.value,
        nullable=False,
    )
    customer_id: Mapped[str | None] = mapped_column(
        String(50),
        ForeignKey("customers.student_id"),
        unique=True,
    )
    reservation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("reservations.id"),
        index=True,
    )
    occupied_at: Mapped[datetime | None] = mapped_column(DateTime)

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
    queue: Mapped["Queue"] = relationship("Queue", back_populates="spots")
    customer: Mapped["Customer | None"] = relationship("Customer", back_populates="queue_spot")
    reservation: Mapped["Reservation | None"] = relationship("Reservation", back_populates="spots")

    def __repr__(self) -> str:
        return f"<QueueSpot #{self.spot_number} {self.status}>"
