"""
Pydantic schemas for admin endpoints.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from hauntq.schemas.queue import ActionResponse, CustomerResponse, QueueResponse, SpotWithCustomerResponse


# --- Haunted House Schemas ---

class HauntedHouseCreate(BaseModel):
    """Schema for creating a haunted house."""
    name: str = Field(..., min_length=1, max_length=100)
    duration: int = Field(10, ge=1, le=120)  # minutes per queue
    break_time_per_queue: int = Field(0, ge=0, le=60)


class HauntedHouseUpdate(BaseModel):
    """Schema for updating a haunted house (all fields optional)."""
    duration: Optional[int] = Field(None, ge=1, le=120)
    break_time_per_queue: Optional[int] = Field(None, ge=0, le=60)


# --- Queue Schemas ---

class QueueCreate(BaseModel):
    """
    Schema for creating a queue.

    Naive times are read as venue local time.
    """
    haunted_house_name: str = Field(..., min_length=1)
    queue_number: int = Field(..., ge=1)
    max_customers: int = Field(..., ge=1, le=100)
    queue_start_time: Optional[datetime] = None
    queue_end_time: Optional[datetime] = None


class QueueUpdate(BaseModel):
    """Schema for updating a queue (all fields optional)."""
    queue_number: Optional[int] = Field(None, ge=1)
    max_customers: Optional[int] = Field(None, ge=1, le=100)
    queue_start_time: Optional[datetime] = None
    queue_end_time: Optional[datetime] = None


class QueueBatchCreate(BaseModel):
    """
    Schema for scheduling consecutive queues of one house.

    Queue i starts when queue i-1 ends plus the break. Duration and break
    default to the house's settings.
    """
    haunted_house_name: str = Field(..., min_length=1)
    starting_queue_number: int = Field(1, ge=1)
    number_of_queues: int = Field(..., ge=1, le=100)
    max_customers: int = Field(..., ge=1, le=100)
    duration_per_queue: Optional[int] = Field(None, ge=1, le=120)
    break_time_per_queue: Optional[int] = Field(None, ge=0, le=60)
    first_queue_start_time: datetime


# --- Customer Assignment ---

class AssignCustomersRequest(BaseModel):
    """Customers to place into the remaining available spots."""
    customer_ids: list[str] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _strip_blank(self):
        self.customer_ids = [cid.strip() for cid in self.customer_ids if cid.strip()]
        return self


# --- Responses ---

class QueueBatchResponse(ActionResponse):
    queues: list[QueueResponse] = []


class AssignCustomersResponse(ActionResponse):
    assignments: list[SpotWithCustomerResponse] = []


class CustomersWithoutQueueResponse(BaseModel):
    customers: list[CustomerResponse]
    count: int


class ReservationCancelled(ActionResponse):
    reservation_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
