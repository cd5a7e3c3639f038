"""Queue model - one scheduled session of a haunted house."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class Queue(Base):
    """
    A time slot of a haunted house with a fixed number of spots.

    `queue_number` is only unique within its house. The queue owns
    `max_customers` spots at steady state; shrinking can leave claimed
    spots above that boundary.
    """

    __tablename__ = "queues"
    __table_args__ = (
        UniqueConstraint("haunted_house_name", "queue_number", name="uq_queue_house_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    haunted_house_name: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("haunted_houses.name"),
        nullable=False,
    )

    queue_number: Mapped[int] = mapped_column(Integer, nullable=False)
    max_customers: Mapped[int] = mapped_column(Integer, nullable=False)

    # Schedule (UTC)
    queue_start_time: Mapped[datetime | None] = mapped_column(DateTime)
    queue_end_time: Mapped[datetime | None] = mapped_column(DateTime)

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
    haunted_house: Mapped["HauntedHouse"] = relationship("HauntedHouse", back_populates="queues")
    spots: Mapped[list["QueueSpot"]] = relationship(
        "QueueSpot",
        back_populates="queue",
        order_by="QueueSpot.spot_number",
    )
    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation",
        back_populates="queue",
    )

    def __repr__(self) -> str:
        return f"<Queue {self.haunted_house_name} #{self.queue_number}>"
