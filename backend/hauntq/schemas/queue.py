"""
Pydantic schemas for houses, queues, spots and reservations.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# Request schemas

class CustomerData(BaseModel):
    """Identity of the customer performing a queue action."""
    student_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    homeroom: str = Field(..., min_length=1, max_length=50)
    ticket_type: str = Field(..., min_length=1, max_length=50)


class JoinQueueRequest(BaseModel):
    """Claim the first available spot of a queue."""
    queue_id: uuid.UUID
    customer_data: CustomerData


class CreateReservationRequest(BaseModel):
    """Hold several spots of a queue for a group."""
    queue_id: uuid.UUID
    max_spots: int = Field(..., ge=2, le=10)
    customer_data: CustomerData


class JoinReservationRequest(BaseModel):
    """Join a group reservation with its shareable code."""
    code: str = Field(..., min_length=6, max_length=10)
    customer_data: CustomerData

    @field_validator("code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


# Response schemas

class SpotStatsResponse(BaseModel):
    available_spots: int
    occupied_spots: int
    reserved_spots: int
    total_spots: int
    active_reservations: Optional[int] = None


class CustomerResponse(BaseModel):
    student_id: str
    name: str
    email: str
    homeroom: str
    ticket_type: str
    reservation_attempts: int

    class Config:
        from_attributes = True


class HauntedHouseResponse(BaseModel):
    name: str
    duration: int
    break_time_per_queue: int
    created_at: datetime

    class Config:
        from_attributes = True


class QueueResponse(BaseModel):
    id: uuid.UUID
    haunted_house_name: str
    queue_number: int
    max_customers: int
    queue_start_time: Optional[datetime] = None
    queue_end_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueueWithStatsResponse(QueueResponse):
    stats: SpotStatsResponse
    haunted_house: Optional[HauntedHouseResponse] = None


class HauntedHouseWithQueuesResponse(HauntedHouseResponse):
    queues: list[QueueWithStatsResponse] = []


class SpotResponse(BaseModel):
    id: uuid.UUID
    queue_id: uuid.UUID
    spot_number: int
    status: str
    customer_id: Optional[str] = None
    reservation_id: Optional[uuid.UUID] = None
    occupied_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SpotWithCustomerResponse(SpotResponse):
    customer: Optional[CustomerResponse] = None


class ReservationResponse(BaseModel):
    id: uuid.UUID
    queue_id: uuid.UUID
    code: str
    representative_customer_id: str
    max_spots: int
    current_spots: int
    expires_at: datetime
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationDetailResponse(ReservationResponse):
    queue: Optional[QueueResponse] = None
    haunted_house: Optional[HauntedHouseResponse] = None
    representative: Optional[CustomerResponse] = None
    spots: list[SpotWithCustomerResponse] = []


class SpotDetailResponse(SpotResponse):
    """A customer's spot with everything the customer page shows."""
    queue: Optional[QueueWithStatsResponse] = None
    haunted_house: Optional[HauntedHouseResponse] = None
    reservation: Optional[ReservationDetailResponse] = None


class ActionResponse(BaseModel):
    """Envelope for customer and admin actions."""
    success: bool
    message: str
    code: Optional[str] = None


class SpotActionResponse(ActionResponse):
    """Result of claiming a spot, directly or through a reservation."""
    spot: Optional[SpotResponse] = None
    queue: Optional[QueueResponse] = None
    haunted_house: Optional[HauntedHouseResponse] = None
    reservation: Optional[ReservationResponse] = None


class ReservationActionResponse(ActionResponse):
    reservation: Optional[ReservationDetailResponse] = None


class MySpotResponse(BaseModel):
    customer: CustomerResponse
    spot: Optional[SpotDetailResponse] = None
