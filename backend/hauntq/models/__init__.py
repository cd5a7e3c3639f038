# Database models
from hauntq.models.customer import Customer
from hauntq.models.haunted_house import HauntedHouse
from hauntq.models.queue import Queue
from hauntq.models.queue_spot import QueueSpot, SpotStatus
from hauntq.models.reservation import Reservation, ReservationStatus
from hauntq.models.user import User, UserRole

__all__ = [
    "Customer",
    "HauntedHouse",
    "Queue",
    "QueueSpot",
    "SpotStatus",
    "Reservation",
    "ReservationStatus",
    "User",
    "UserRole",
]
