"""Customer model - a ticket holder who can pick a haunted house spot."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hauntq.database import Base
from hauntq.utils.timezone import utc_now


class Customer(Base):
    """
    Ticket holder, keyed by the school-issued student id.

    `reservation_attempts` counts the reservations this customer
    represented that expired before filling up.
    """

    __tablename__ = "customers"

    student_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    homeroom: Mapped[str] = mapped_column(String(50), nullable=False)
    ticket_type: Mapped[str] = mapped_column(String(50), nullable=False)

    reservation_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )

    # Relationships
    queue_spot: Mapped["QueueSpot | None"] = relationship(
        "QueueSpot",
        back_populates="customer",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Customer {self.student_id} {self.name}>"
