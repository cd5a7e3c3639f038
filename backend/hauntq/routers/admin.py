"""
Admin API endpoints for managing houses, queues and reservations.

All endpoints require admin authentication:
- Authenticated user with the admin role, OR
- Valid `X-Admin-API-Key` header

For public read access to houses and queues, use `/api/haunted-houses`
and `/api/queues/{queue_id}`.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.auth.dependencies import verify_admin_access
from hauntq.database import get_db, get_session_factory
from hauntq.models import ReservationStatus, User
from hauntq.routers.errors import raise_for_result
from hauntq.schemas.admin import (
    AssignCustomersRequest,
    AssignCustomersResponse,
    CustomersWithoutQueueResponse,
    HauntedHouseCreate,
    HauntedHouseUpdate,
    QueueBatchCreate,
    QueueBatchResponse,
    QueueCreate,
    QueueUpdate,
    ReservationCancelled,
)
from hauntq.schemas.queue import (
    CustomerResponse,
    HauntedHouseResponse,
    QueueResponse,
    ReservationDetailResponse,
    SpotWithCustomerResponse,
)
from hauntq.services import allocation, house_admin
from hauntq.services.queries import customers_without_queue, list_reservations
from hauntq.services.reconciler import reconcile_reservations

router = APIRouter()


# =============================================================================
# Haunted House Admin Endpoints
# =============================================================================

@router.post("/haunted-houses", response_model=HauntedHouseResponse, status_code=status.HTTP_201_CREATED)
async def create_haunted_house(
    data: HauntedHouseCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Create a new haunted house."""
    result = raise_for_result(await house_admin.create_house(session_factory, data))
    return result.data


@router.patch("/haunted-houses/{name}", response_model=HauntedHouseResponse)
async def update_haunted_house(
    name: str,
    data: HauntedHouseUpdate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Update a haunted house's default duration or break time."""
    result = raise_for_result(await house_admin.update_house(session_factory, name, data))
    return result.data


@router.delete("/haunted-houses/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_haunted_house(
    name: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """
    Delete a haunted house.

    Note: This also deletes all of its queues, their spots and their
    reservations.
    """
    raise_for_result(await house_admin.delete_house(session_factory, name))


# =============================================================================
# Queue Admin Endpoints
# =============================================================================

@router.post("/queues", response_model=QueueResponse, status_code=status.HTTP_201_CREATED)
async def create_queue(
    data: QueueCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Create a queue with `max_customers` available spots."""
    result = raise_for_result(await house_admin.create_queue(session_factory, data))
    return result.data


@router.post("/queues/batch", response_model=QueueBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_batch_queues(
    data: QueueBatchCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """
    Schedule consecutive queues for a house.

    **Example** - six 10 minute queues with a 5 minute break:
    ```
    POST /api/admin/queues/batch
    {"haunted_house_name": "Asylum", "number_of_queues": 6, "max_customers": 8,
     "duration_per_queue": 10, "break_time_per_queue": 5,
     "first_queue_start_time": "2025-10-31T18:00:00"}
    ```
    """
    result = raise_for_result(await house_admin.create_batch_queues(session_factory, data))
    return QueueBatchResponse(
        success=True,
        message=result.message,
        queues=[QueueResponse.model_validate(q) for q in result.data],
    )


@router.patch("/queues/{queue_id}", response_model=QueueResponse)
async def update_queue(
    queue_id: uuid.UUID,
    data: QueueUpdate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """
    Update a queue.

    Changing `max_customers` resizes the queue. Shrinking only removes
    available spots; claimed spots above the new size stay until freed.
    """
    result = raise_for_result(await house_admin.update_queue(session_factory, queue_id, data))
    return result.data


@router.delete("/queues/{queue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_queue(
    queue_id: uuid.UUID,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Delete a queue with its spots and reservations."""
    raise_for_result(await house_admin.delete_queue(session_factory, queue_id))


# =============================================================================
# Reservation Admin Endpoints
# =============================================================================

@router.get("/reservations", response_model=list[ReservationDetailResponse])
async def get_reservations(
    status: Optional[ReservationStatus] = None,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """List reservations, newest first, optionally filtered by status."""
    await reconcile_reservations(session_factory)
    return await list_reservations(db, status)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationCancelled)
async def cancel_reservation(
    reservation_id: uuid.UUID,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Cancel an active reservation and free all of its spots."""
    result = raise_for_result(await allocation.cancel_reservation(session_factory, reservation_id))
    return ReservationCancelled(
        success=True,
        message="Reservation cancelled",
        reservation_id=result.data.id,
        status=result.data.status,
    )


# =============================================================================
# Customer Admin Endpoints
# =============================================================================

@router.get("/customers/without-queue", response_model=CustomersWithoutQueueResponse)
async def get_customers_without_queue(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Customers with a supported ticket who have not picked a spot yet."""
    await reconcile_reservations(session_factory)
    customers = await customers_without_queue(db)
    return CustomersWithoutQueueResponse(
        customers=[CustomerResponse.model_validate(c) for c in customers],
        count=len(customers),
    )


@router.post("/customers/assign-remaining", response_model=AssignCustomersResponse)
async def assign_remaining_spots(
    data: AssignCustomersRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _admin: Optional[User] = Depends(verify_admin_access),
):
    """Place the given customers into the remaining available spots."""
    result = raise_for_result(
        await allocation.assign_customers_to_remaining_spots(session_factory, data.customer_ids)
    )
    return AssignCustomersResponse(
        success=True,
        message=result.message,
        assignments=[SpotWithCustomerResponse.model_validate(s) for s in result.data],
    )
