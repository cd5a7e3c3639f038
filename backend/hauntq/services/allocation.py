"""
Allocation engine - claims, holds and releases queue spots.

Every operation runs in a single transaction. Spots and reservation
counters are only changed through conditional UPDATEs whose row counts
are checked, so two customers racing for the same spot (or the sweep
racing a join) can never both win. A lost race moves on to the next
candidate spot; not finding enough spots rolls the whole transaction
back.

Operations take the session factory rather than a session: they open
their own transaction, reconcile stale reservations first, and are
retried as a whole on transient database errors (see `action`).
"""

import logging
import secrets
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from hauntq.config import get_settings
from hauntq.models import Customer, Queue, QueueSpot, Reservation, ReservationStatus, SpotStatus
from hauntq.schemas.queue import CustomerData
from hauntq.services.customer_registry import get_customer, get_or_create_customer
from hauntq.services.reconciler import finalize_reservation, reconcile_reservations
from hauntq.services.results import (
    ActionResult,
    AllocationError,
    AlreadyInQueue,
    CannotCancel,
    CannotJoin,
    ErrorCode,
    InvalidInput,
    InvalidReservationCode,
    MaxReservationAttempts,
    NoAvailableSpots,
    NotFound,
    NotInQueue,
    ReservationExpired,
    ReservationFull,
    action,
)
from hauntq.services.spot_pool import release_reservation_spots, release_spot
from hauntq.utils.timezone import utc_now

logger = logging.getLogger(__name__)

# No 0/O or 1/I, codes are read out loud and typed on phones
RESERVATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

MIN_GROUP_SIZE = 2
MAX_GROUP_SIZE = 10


class CodeGenerationFailed(AllocationError):
    code = ErrorCode.DATABASE_ERROR


# ============== Reservation codes ==============

def random_reservation_code(length: Optional[int] = None) -> str:
    """Draw one code from the reservation alphabet."""
    length = length or get_settings().reservation_code_length
    return "".join(secrets.choice(RESERVATION_CODE_ALPHABET) for _ in range(length))


async def generate_reservation_code(
    is_taken: Callable[[str], Awaitable[bool]],
    retries: Optional[int] = None,
) -> str:
    """
    Generate a code that `is_taken` reports as free.

    Args:
        is_taken: Async predicate checking a candidate against stored codes
        retries: Candidates to try before giving up

    Raises:
        CodeGenerationFailed: every candidate collided
    """
    retries = retries or get_settings().reservation_code_retries
    for _ in range(retries):
        code = random_reservation_code()
        if not await is_taken(code):
            return code
        logger.warning("Reservation code collision on %s, retrying", code)
    raise CodeGenerationFailed("Could not generate a unique reservation code")


def reservation_expiry(max_spots: int, now: Optional[datetime] = None) -> datetime:
    """Deadline for a group of `max_spots` to fill up."""
    now = now or utc_now()
    return now + timedelta(minutes=max_spots * get_settings().reservation_minutes_per_spot)


# ============== Lookups ==============

async def customer_has_queue_spot(db: AsyncSession, student_id: str) -> bool:
    """Check whether a customer already holds any spot, in any queue."""
    spot_id = await db.scalar(
        select(QueueSpot.id).where(QueueSpot.customer_id == student_id).limit(1)
    )
    return spot_id is not None


async def _get_queue(db: AsyncSession, queue_id: uuid.UUID) -> Queue:
    queue = await db.get(Queue, queue_id)
    if not queue:
        raise NotFound("Queue not found")
    return queue


async def _available_spot_ids(db: AsyncSession, queue_id: uuid.UUID) -> list[uuid.UUID]:
    """Available spots of a queue, first available first."""
    result = await db.execute(
        select(QueueSpot.id)
        .where(
            QueueSpot.queue_id == queue_id,
            QueueSpot.status == SpotStatus.AVAILABLE.value,
        )
        .order_by(QueueSpot.spot_number)
    )
    return list(result.scalars().all())


async def load_spot(db: AsyncSession, spot_id: uuid.UUID) -> QueueSpot:
    """Fetch a spot with its queue, house and reservation."""
    result = await db.execute(
        select(QueueSpot)
        .where(QueueSpot.id == spot_id)
        .options(
            selectinload(QueueSpot.queue).selectinload(Queue.haunted_house),
            selectinload(QueueSpot.reservation),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def load_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> Optional[Reservation]:
    """Fetch a reservation with its queue, house, representative and spots."""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .options(
            selectinload(Reservation.queue).selectinload(Queue.haunted_house),
            selectinload(Reservation.representative),
            selectinload(Reservation.spots).selectinload(QueueSpot.customer),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ============== Conditional spot transitions ==============

async def _occupy_spot(db: AsyncSession, spot_id: uuid.UUID, student_id: str, now: datetime) -> bool:
    """available -> occupied"""
    try:
        result = await db.execute(
            update(QueueSpot)
            .where(
                QueueSpot.id == spot_id,
                QueueSpot.status == SpotStatus.AVAILABLE.value,
            )
            .values(
                status=SpotStatus.OCCUPIED.value,
                customer_id=student_id,
                occupied_at=now,
            )
            .execution_options(synchronize_session=False)
        )
    except IntegrityError:
        # Unique customer_id: the customer got a spot elsewhere meanwhile
        raise AlreadyInQueue()
    return result.rowcount == 1


async def _hold_spot(db: AsyncSession, spot_id: uuid.UUID, reservation_id: uuid.UUID) -> bool:
    """available -> reserved (unclaimed)"""
    result = await db.execute(
        update(QueueSpot)
        .where(
            QueueSpot.id == spot_id,
            QueueSpot.status == SpotStatus.AVAILABLE.value,
        )
        .values(status=SpotStatus.RESERVED.value, reservation_id=reservation_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _claim_held_spot(
    db: AsyncSession,
    spot_id: uuid.UUID,
    reservation_id: uuid.UUID,
    student_id: str,
    now: datetime,
) -> bool:
    """reserved (unclaimed) -> reserved (claimed)"""
    try:
        result = await db.execute(
            update(QueueSpot)
            .where(
                QueueSpot.id == spot_id,
                QueueSpot.reservation_id == reservation_id,
                QueueSpot.status == SpotStatus.RESERVED.value,
                QueueSpot.customer_id.is_(None),
            )
            .values(customer_id=student_id, occupied_at=now)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError:
        raise AlreadyInQueue()
    return result.rowcount == 1


def _ensure_joinable(reservation: Reservation, now: datetime) -> None:
    if reservation.status == ReservationStatus.EXPIRED.value:
        raise ReservationExpired()
    if reservation.status == ReservationStatus.COMPLETED.value:
        raise ReservationFull()
    if reservation.status != ReservationStatus.ACTIVE.value:
        raise CannotJoin(f"This reservation is {reservation.status}")
    if now > reservation.expires_at:
        raise ReservationExpired()
    if reservation.is_full:
        raise ReservationFull()


# ============== Operations ==============

@action("Failed to join queue")
async def join_queue(
    session_factory: async_sessionmaker[AsyncSession],
    queue_id: uuid.UUID,
    customer_data: CustomerData,
) -> QueueSpot:
    """
    Claim the first available spot of a queue for a customer.

    Returns:
        The occupied spot, with its queue and house loaded
    """
    await reconcile_reservations(session_factory)
    customer = await get_or_create_customer(session_factory, customer_data)

    async with session_factory() as db:
        async with db.begin():
            if await customer_has_queue_spot(db, customer.student_id):
                raise AlreadyInQueue()
            await _get_queue(db, queue_id)

            candidates = await _available_spot_ids(db, queue_id)
            now = utc_now()
            for spot_id in candidates:
                if await _occupy_spot(db, spot_id, customer.student_id, now):
                    break
            else:
                raise NoAvailableSpots()

            spot = await load_spot(db, spot_id)

    logger.info(
        "Customer %s joined queue %s at spot #%d",
        customer.student_id, queue_id, spot.spot_number,
    )
    return spot


@action("Failed to create reservation")
async def create_reservation(
    session_factory: async_sessionmaker[AsyncSession],
    queue_id: uuid.UUID,
    max_spots: int,
    customer_data: CustomerData,
) -> Reservation:
    """
    Hold `max_spots` spots of a queue for a group.

    The representative claims the lowest of the held spots. Either all
    spots are held or nothing changes.

    Returns:
        The new reservation with queue, house, representative and spots
    """
    if not MIN_GROUP_SIZE <= max_spots <= MAX_GROUP_SIZE:
        raise InvalidInput(f"Group size must be between {MIN_GROUP_SIZE} and {MAX_GROUP_SIZE}")

    settings = get_settings()
    await reconcile_reservations(session_factory)
    customer = await get_or_create_customer(session_factory, customer_data)

    async with session_factory() as db:
        async with db.begin():
            # Re-read for an up to date attempt count
            customer = await get_customer(db, customer.student_id)
            if await customer_has_queue_spot(db, customer.student_id):
                raise AlreadyInQueue()
            if customer.reservation_attempts >= settings.max_reservation_attempts:
                raise MaxReservationAttempts(
                    f"Reservation limit reached ({settings.max_reservation_attempts} attempts allowed)"
                )
            await _get_queue(db, queue_id)

            candidates = await _available_spot_ids(db, queue_id)
            if len(candidates) < max_spots:
                raise NoAvailableSpots(
                    f"Only {len(candidates)} spots left, {max_spots} needed"
                )

            async def code_taken(code: str) -> bool:
                existing = await db.scalar(select(Reservation.id).where(Reservation.code == code))
                return existing is not None

            code = await generate_reservation_code(code_taken)
            now = utc_now()
            reservation = Reservation(
                id=uuid.uuid4(),
                queue_id=queue_id,
                code=code,
                representative_customer_id=customer.student_id,
                max_spots=max_spots,
                current_spots=1,
                expires_at=reservation_expiry(max_spots, now),
                status=ReservationStatus.ACTIVE.value,
            )
            db.add(reservation)
            await db.flush()

            held: list[uuid.UUID] = []
            for spot_id in candidates:
                if await _hold_spot(db, spot_id, reservation.id):
                    held.append(spot_id)
                    if len(held) == max_spots:
                        break
            if len(held) < max_spots:
                raise NoAvailableSpots(f"Only {len(held)} spots left, {max_spots} needed")

            if not await _claim_held_spot(db, held[0], reservation.id, customer.student_id, now):
                raise NoAvailableSpots()

            reservation = await load_reservation(db, reservation.id)

    logger.info(
        "Customer %s created reservation %s for %d spots in queue %s",
        customer.student_id, reservation.code, max_spots, queue_id,
    )
    return reservation


@action("Failed to join reservation")
async def join_reservation(
    session_factory: async_sessionmaker[AsyncSession],
    code: str,
    customer_data: CustomerData,
) -> QueueSpot:
    """
    Join a group reservation by its code.

    The member claims one of the reservation's unclaimed spots. The join
    that fills the group completes the reservation on the spot.

    Returns:
        The claimed spot, with queue, house and reservation loaded
    """
    code = code.strip().upper()
    await reconcile_reservations(session_factory)
    customer = await get_or_create_customer(session_factory, customer_data)

    async with session_factory() as db:
        async with db.begin():
            if await customer_has_queue_spot(db, customer.student_id):
                raise AlreadyInQueue()

            reservation = (await db.execute(
                select(Reservation)
                .where(Reservation.code == code)
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if not reservation:
                raise InvalidReservationCode()

            now = utc_now()
            _ensure_joinable(reservation, now)

            counted = await db.execute(
                update(Reservation)
                .where(
                    Reservation.id == reservation.id,
                    Reservation.status == ReservationStatus.ACTIVE.value,
                    Reservation.current_spots < Reservation.max_spots,
                    Reservation.expires_at >= now,
                )
                .values(current_spots=Reservation.current_spots + 1)
                .execution_options(synchronize_session=False)
            )
            if counted.rowcount != 1:
                # Changed since the read above, report its new state
                await db.refresh(reservation)
                _ensure_joinable(reservation, now)
                raise CannotJoin()

            unclaimed = (await db.execute(
                select(QueueSpot.id)
                .where(
                    QueueSpot.reservation_id == reservation.id,
                    QueueSpot.status == SpotStatus.RESERVED.value,
                    QueueSpot.customer_id.is_(None),
                )
                .order_by(QueueSpot.spot_number)
            )).scalars().all()
            for spot_id in unclaimed:
                if await _claim_held_spot(db, spot_id, reservation.id, customer.student_id, now):
                    break
            else:
                raise NoAvailableSpots("No free spot left in this reservation")

            await db.refresh(reservation)
            if reservation.is_full:
                await finalize_reservation(db, reservation.id)

            spot = await load_spot(db, spot_id)

    logger.info(
        "Customer %s joined reservation %s (%d/%d)",
        customer.student_id, code, reservation.current_spots, reservation.max_spots,
    )
    return spot


@action("Failed to leave queue")
async def leave_queue(
    session_factory: async_sessionmaker[AsyncSession],
    student_id: str,
) -> ActionResult:
    """
    Give up the customer's spot.

    - direct spot: back to available
    - representative: the whole reservation is cancelled and released
    - member: the spot goes back to the reservation, unclaimed
    """
    await reconcile_reservations(session_factory)

    async with session_factory() as db:
        async with db.begin():
            spot = (await db.execute(
                select(QueueSpot)
                .where(QueueSpot.customer_id == student_id)
                .options(selectinload(QueueSpot.reservation))
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if not spot:
                raise NotInQueue()

            reservation = spot.reservation
            if reservation is None:
                if not await release_spot(db, spot.id, student_id):
                    raise NotInQueue()
                logger.info("Customer %s left spot #%d", student_id, spot.spot_number)
                return ActionResult.ok(message="You left the queue")

            if reservation.representative_customer_id == student_id:
                cancelled = await db.execute(
                    update(Reservation)
                    .where(
                        Reservation.id == reservation.id,
                        Reservation.status == ReservationStatus.ACTIVE.value,
                    )
                    .values(status=ReservationStatus.CANCELLED.value)
                    .execution_options(synchronize_session=False)
                )
                if cancelled.rowcount != 1:
                    raise NotInQueue()
                released = await release_reservation_spots(db, reservation.id)
                logger.info(
                    "Representative %s left, reservation %s cancelled and %d spots released",
                    student_id, reservation.code, released,
                )
                return ActionResult.ok(message="You left the queue and your reservation was cancelled")

            cleared = await db.execute(
                update(QueueSpot)
                .where(
                    QueueSpot.id == spot.id,
                    QueueSpot.customer_id == student_id,
                )
                .values(customer_id=None, occupied_at=None)
                .execution_options(synchronize_session=False)
            )
            if cleared.rowcount != 1:
                raise NotInQueue()
            await db.execute(
                update(Reservation)
                .where(
                    Reservation.id == reservation.id,
                    Reservation.current_spots > 1,
                )
                .values(current_spots=Reservation.current_spots - 1)
                .execution_options(synchronize_session=False)
            )
            logger.info("Member %s left reservation %s", student_id, reservation.code)
            return ActionResult.ok(message="You left the reservation")


@action("Failed to cancel reservation")
async def cancel_reservation(
    session_factory: async_sessionmaker[AsyncSession],
    reservation_id: uuid.UUID,
) -> Reservation:
    """Cancel an active reservation and release all of its spots (admin)."""
    async with session_factory() as db:
        async with db.begin():
            reservation = await db.get(Reservation, reservation_id)
            if not reservation:
                raise NotFound("Reservation not found")
            if reservation.status != ReservationStatus.ACTIVE.value:
                raise CannotCancel(f"Cannot cancel a {reservation.status} reservation")

            cancelled = await db.execute(
                update(Reservation)
                .where(
                    Reservation.id == reservation_id,
                    Reservation.status == ReservationStatus.ACTIVE.value,
                )
                .values(status=ReservationStatus.CANCELLED.value)
                .execution_options(synchronize_session=False)
            )
            if cancelled.rowcount != 1:
                raise CannotCancel()
            released = await release_reservation_spots(db, reservation_id)

            reservation = await load_reservation(db, reservation_id)

    logger.info("Reservation %s cancelled by admin, %d spots released", reservation.code, released)
    return reservation


@action("Failed to assign customers")
async def assign_customers_to_remaining_spots(
    session_factory: async_sessionmaker[AsyncSession],
    student_ids: list[str],
) -> ActionResult:
    """
    Place customers without a spot into the remaining available spots.

    Spots are filled queue by queue in spot number order. Customers who
    are unknown or already hold a spot are skipped.

    Returns:
        The spots that were assigned
    """
    if not student_ids:
        raise InvalidInput("No customers selected")

    await reconcile_reservations(session_factory)

    async with session_factory() as db:
        async with db.begin():
            known = (await db.execute(
                select(Customer.student_id).where(Customer.student_id.in_(student_ids))
            )).scalars().all()
            seated = (await db.execute(
                select(QueueSpot.customer_id).where(QueueSpot.customer_id.in_(student_ids))
            )).scalars().all()
            pending = [sid for sid in dict.fromkeys(student_ids) if sid in set(known) - set(seated)]

            candidates = (await db.execute(
                select(QueueSpot.id)
                .join(Queue, QueueSpot.queue_id == Queue.id)
                .where(QueueSpot.status == SpotStatus.AVAILABLE.value)
                .order_by(Queue.haunted_house_name, Queue.queue_number, QueueSpot.spot_number)
            )).scalars().all()

            now = utc_now()
            assigned_ids: list[uuid.UUID] = []
            spots = iter(candidates)
            for student_id in pending:
                for spot_id in spots:
                    if await _occupy_spot(db, spot_id, student_id, now):
                        assigned_ids.append(spot_id)
                        break
                else:
                    break

            assigned = []
            if assigned_ids:
                assigned = (await db.execute(
                    select(QueueSpot)
                    .where(QueueSpot.id.in_(assigned_ids))
                    .options(selectinload(QueueSpot.customer))
                    .order_by(QueueSpot.spot_number)
                    .execution_options(populate_existing=True)
                )).scalars().all()

    skipped = len(student_ids) - len(assigned_ids)
    logger.info("Assigned %d customers to remaining spots (%d skipped)", len(assigned_ids), skipped)
    return ActionResult.ok(
        list(assigned),
        message=f"Successfully assigned {len(assigned_ids)} customers to spots",
    )

