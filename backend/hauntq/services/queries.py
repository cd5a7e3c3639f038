"""
Read projections for houses, queues, spots and reservations.

Plain reads in the caller's session. Callers that show customers live
data run the reconciliation sweep first.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hauntq.config import get_settings
from hauntq.models import Customer, HauntedHouse, Queue, QueueSpot, Reservation, ReservationStatus
from hauntq.schemas.queue import (
    HauntedHouseResponse,
    HauntedHouseWithQueuesResponse,
    QueueResponse,
    QueueWithStatsResponse,
    ReservationDetailResponse,
    SpotDetailResponse,
    SpotResponse,
    SpotStatsResponse,
)
from hauntq.services.stats import calculate_stats


def queue_with_stats(queue: Queue, include_house: bool = False) -> QueueWithStatsResponse:
    """
    Project a queue with its spot counts.

    `queue.spots` and `queue.reservations` must be loaded, and
    `queue.haunted_house` too when `include_house` is set.
    """
    stats = calculate_stats(queue.spots, queue.reservations)
    return QueueWithStatsResponse(
        **QueueResponse.model_validate(queue).model_dump(),
        stats=SpotStatsResponse(**stats.as_dict()),
        haunted_house=(
            HauntedHouseResponse.model_validate(queue.haunted_house) if include_house else None
        ),
    )


def _house_with_queues(house: HauntedHouse) -> HauntedHouseWithQueuesResponse:
    return HauntedHouseWithQueuesResponse(
        **HauntedHouseResponse.model_validate(house).model_dump(),
        queues=[queue_with_stats(queue) for queue in house.queues],
    )


def _house_options():
    return (
        selectinload(HauntedHouse.queues).selectinload(Queue.spots),
        selectinload(HauntedHouse.queues).selectinload(Queue.reservations),
    )


async def list_houses_with_stats(db: AsyncSession) -> list[HauntedHouseWithQueuesResponse]:
    """All haunted houses with their queues and spot counts."""
    result = await db.execute(
        select(HauntedHouse)
        .options(*_house_options())
        .order_by(HauntedHouse.name)
    )
    return [_house_with_queues(house) for house in result.scalars().all()]


async def get_house_with_stats(db: AsyncSession, name: str) -> Optional[HauntedHouseWithQueuesResponse]:
    """One haunted house with its queues and spot counts."""
    result = await db.execute(
        select(HauntedHouse)
        .where(HauntedHouse.name == name)
        .options(*_house_options())
    )
    house = result.scalar_one_or_none()
    if not house:
        return None
    return _house_with_queues(house)


async def get_queue_with_availability(db: AsyncSession, queue_id: uuid.UUID) -> Optional[QueueWithStatsResponse]:
    """One queue with its house and spot counts."""
    result = await db.execute(
        select(Queue)
        .where(Queue.id == queue_id)
        .options(
            selectinload(Queue.haunted_house),
            selectinload(Queue.spots),
            selectinload(Queue.reservations),
        )
    )
    queue = result.scalar_one_or_none()
    if not queue:
        return None
    return queue_with_stats(queue, include_house=True)


def _reservation_options():
    return (
        selectinload(Reservation.queue).selectinload(Queue.haunted_house),
        selectinload(Reservation.representative),
        selectinload(Reservation.spots).selectinload(QueueSpot.customer),
    )


def reservation_detail(reservation: Reservation) -> ReservationDetailResponse:
    """Project a reservation loaded with queue, house, representative and spots."""
    detail = ReservationDetailResponse.model_validate(reservation)
    if reservation.queue is not None:
        detail.haunted_house = HauntedHouseResponse.model_validate(reservation.queue.haunted_house)
    return detail


async def get_customer_spot(db: AsyncSession, student_id: str) -> Optional[SpotDetailResponse]:
    """
    The customer's current spot with queue, house and reservation.

    Returns None when the customer holds no spot.
    """
    result = await db.execute(
        select(QueueSpot)
        .where(QueueSpot.customer_id == student_id)
        .options(
            selectinload(QueueSpot.queue).selectinload(Queue.haunted_house),
            selectinload(QueueSpot.queue).selectinload(Queue.spots),
            selectinload(QueueSpot.queue).selectinload(Queue.reservations),
            selectinload(QueueSpot.reservation).options(*_reservation_options()),
        )
    )
    spot = result.scalar_one_or_none()
    if not spot:
        return None

    return SpotDetailResponse(
        **SpotResponse.model_validate(spot).model_dump(),
        queue=queue_with_stats(spot.queue),
        haunted_house=HauntedHouseResponse.model_validate(spot.queue.haunted_house),
        reservation=reservation_detail(spot.reservation) if spot.reservation else None,
    )


async def list_reservations(
    db: AsyncSession,
    status: Optional[ReservationStatus] = None,
) -> list[ReservationDetailResponse]:
    """Reservations, newest first, optionally filtered by status."""
    query = select(Reservation).options(*_reservation_options())
    if status is not None:
        query = query.where(Reservation.status == status.value)
    result = await db.execute(query.order_by(Reservation.created_at.desc()))
    return [reservation_detail(r) for r in result.scalars().all()]


async def customers_without_queue(db: AsyncSession) -> list[Customer]:
    """Customers with a supported ticket type who hold no spot, by name."""
    unsupported = get_settings().unsupported_ticket_types
    query = select(Customer).where(~Customer.queue_spot.has())
    if unsupported:
        query = query.where(Customer.ticket_type.not_in(unsupported))
    result = await db.execute(query.order_by(Customer.name))
    return list(result.scalars().all())
