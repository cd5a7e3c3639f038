"""HauntedHouse model - an attraction that runs a series of queues."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class HauntedHouse(Base):
    """
    Haunted house attraction.

    Identified by its display name. `duration` and `break_time_per_queue`
    are the defaults used when scheduling a batch of queues.
    """

    __tablename__ = "haunted_houses"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    duration: Mapped[int] = mapped_column(Integer, default=10, nullable=False)  # minutes
    break_time_per_queue: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

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
    queues: Mapped[list["Queue"]] = relationship(
        "Queue",
        back_populates="haunted_house",
        order_by="Queue.queue_number",
    )

    def __repr__(self) -> str:
        return f"<HauntedHouse {self.name}>"
