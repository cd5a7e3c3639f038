"""
Expiry reconciler - settles reservations whose outcome is already decided.

Two passes:
- unfilled reservations past their deadline are expired and their spots
  released back to the pool
- filled reservations are completed and their claimed spots become
  plain occupied spots

Each reservation is settled in its own transaction. A failure is logged
and the sweep moves on to the next one. Every settlement is a
conditional update, so running the sweep again (or concurrently with a
join) never settles a reservation twice.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.models import QueueSpot, Reservation, ReservationStatus, SpotStatus
from hauntq.services.customer_registry import record_expired_attempt
from hauntq.services.spot_pool import release_reservation_spots
from hauntq.utils.retry import retry_database
from hauntq.utils.timezone import utc_now

logger = logging.getLogger(__name__)


async def expire_reservation(
    db: AsyncSession,
    reservation_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> bool:
    """
    Expire an unfilled reservation whose deadline has passed.

    Releases all of its spots and counts the expiry against the
    representative's reservation attempts.

    Returns:
        True if the reservation was expired by this call
    """
    now = now or utc_now()
    result = await db.execute(
        update(Reservation)
        .where(
            Reservation.id == reservation_id,
            Reservation.status == ReservationStatus.ACTIVE.value,
            Reservation.expires_at < now,
            Reservation.current_spots < Reservation.max_spots,
        )
        .values(status=ReservationStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    released = await release_reservation_spots(db, reservation_id)
    representative_id = await db.scalar(
        select(Reservation.representative_customer_id).where(Reservation.id == reservation_id)
    )
    await record_expired_attempt(db, representative_id)

    logger.info(
        "Reservation %s expired, released %d spots (representative %s)",
        reservation_id, released, representative_id,
    )
    return True


async def finalize_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> bool:
    """
    Complete a filled reservation.

    Claimed spots drop their reservation link and become occupied. A
    reservation that is already completed with no spots attached is
    left untouched.

    Returns:
        True if anything changed
    """
    spots = await db.execute(
        update(QueueSpot)
        .where(
            QueueSpot.reservation_id == reservation_id,
            QueueSpot.customer_id.is_not(None),
        )
        .values(status=SpotStatus.OCCUPIED.value, reservation_id=None)
        .execution_options(synchronize_session=False)
    )
    status = await db.execute(
        update(Reservation)
        .where(
            Reservation.id == reservation_id,
            Reservation.status == ReservationStatus.ACTIVE.value,
            Reservation.current_spots >= Reservation.max_spots,
        )
        .values(status=ReservationStatus.COMPLETED.value)
        .execution_options(synchronize_session=False)
    )

    changed = spots.rowcount > 0 or status.rowcount > 0
    if changed:
        logger.info("Reservation %s completed, %d spots now occupied", reservation_id, spots.rowcount)
    return changed


async def _settle(
    session_factory: async_sessionmaker[AsyncSession],
    reservation_id: uuid.UUID,
    settle,
    description: str,
) -> bool:
    async def run() -> bool:
        async with session_factory() as db:
            async with db.begin():
                return await settle(db, reservation_id)

    try:
        return await retry_database(run, f"{description} reservation {reservation_id}")
    except SQLAlchemyError:
        logger.exception("Failed to %s reservation %s", description, reservation_id)
        return False


async def _pending(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime,
) -> tuple[list[uuid.UUID], list[uuid.UUID]]:
    """Ids of reservations due for expiry and of filled ones to complete."""
    async with session_factory() as db:
        expired_ids = (await db.execute(
            select(Reservation.id).where(
                Reservation.status == ReservationStatus.ACTIVE.value,
                Reservation.expires_at < now,
                Reservation.current_spots < Reservation.max_spots,
            )
        )).scalars().all()
        filled_ids = (await db.execute(
            select(Reservation.id).where(
                Reservation.current_spots >= Reservation.max_spots,
                or_(
                    Reservation.status == ReservationStatus.ACTIVE.value,
                    and_(
                        Reservation.status == ReservationStatus.COMPLETED.value,
                        Reservation.spots.any(),
                    ),
                ),
            )
        )).scalars().all()
    return list(expired_ids), list(filled_ids)


async def reconcile_reservations(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """
    Run one reconciliation sweep.

    The sweep is opportunistic: when the store stays unreachable after
    retries it logs the failure and settles nothing, leaving the work
    to the next sweep.

    Args:
        session_factory: Opens one session per settled reservation

    Returns:
        Number of reservations expired or completed by this sweep
    """
    now = utc_now()
    try:
        expired_ids, filled_ids = await retry_database(
            lambda: _pending(session_factory, now),
            "select reservations to reconcile",
        )
    except SQLAlchemyError:
        logger.exception("Reconciliation sweep could not read pending reservations")
        return 0

    touched = 0
    for reservation_id in expired_ids:
        if await _settle(
            session_factory,
            reservation_id,
            lambda db, rid: expire_reservation(db, rid, now),
            "expire",
        ):
            touched += 1

    for reservation_id in filled_ids:
        if await _settle(session_factory, reservation_id, finalize_reservation, "finalize"):
            touched += 1

    if touched:
        logger.info("Reconciliation sweep settled %d reservations", touched)
    return touched
