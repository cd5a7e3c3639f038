"""
Spot pool service - creates, resizes and releases the spots of a queue.

Every function runs inside the caller's transaction and never commits.
"""

import logging
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hauntq.models import QueueSpot, SpotStatus

logger = logging.getLogger(__name__)


def _new_spots(queue_id: uuid.UUID, first_number: int, count: int) -> list[QueueSpot]:
    return [
        QueueSpot(
            id=uuid.uuid4(),
            queue_id=queue_id,
            spot_number=first_number + i,
            status=SpotStatus.AVAILABLE.value,
        )
        for i in range(count)
    ]


async def create_pool(db: AsyncSession, queue_id: uuid.UUID, size: int) -> list[QueueSpot]:
    """
    Create `size` available spots numbered 1..size for a new queue.

    Args:
        db: Database session
        queue_id: The queue the spots belong to
        size: Number of spots

    Returns:
        The new spots, in spot number order
    """
    spots = _new_spots(queue_id, 1, size)
    db.add_all(spots)
    await db.flush()
    logger.info("Created %d spots for queue %s", size, queue_id)
    return spots


async def resize_pool(db: AsyncSession, queue_id: uuid.UUID, new_size: int) -> int:
    """
    Grow or shrink a queue's spots to `new_size`.

    Growing appends available spots after the highest number. Shrinking
    deletes only the *available* spots beyond the new size; occupied and
    reserved spots above the boundary stay where they are, so the pool
    can remain larger than `new_size` until they are released.

    Returns:
        The number of spots the queue has afterwards
    """
    result = await db.execute(
        select(QueueSpot)
        .where(QueueSpot.queue_id == queue_id)
        .order_by(QueueSpot.spot_number)
    )
    existing = list(result.scalars().all())
    current = len(existing)

    if new_size > current:
        # Continue numbering after the highest spot, which may sit above
        # `current` when an earlier shrink was blocked
        last_number = existing[-1].spot_number if existing else 0
        db.add_all(_new_spots(queue_id, last_number + 1, new_size - current))
        await db.flush()
        logger.info("Queue %s grown from %d to %d spots", queue_id, current, new_size)
        return new_size

    if new_size < current:
        removable = [
            spot.id
            for spot in existing[new_size:]
            if spot.status == SpotStatus.AVAILABLE.value
        ]
        deleted = 0
        if removable:
            # Re-check the status in the statement so a spot claimed since
            # the read above survives
            result = await db.execute(
                delete(QueueSpot)
                .where(
                    QueueSpot.id.in_(removable),
                    QueueSpot.status == SpotStatus.AVAILABLE.value,
                )
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount
            for spot in existing:
                if spot.id in removable:
                    db.expunge(spot)
        blocked = current - new_size - deleted
        if blocked:
            logger.warning(
                "Queue %s shrink to %d left %d claimed spots above the limit",
                queue_id, new_size, blocked,
            )
        return current - deleted

    return current


async def release_spot(db: AsyncSession, spot_id: uuid.UUID, customer_id: str) -> bool:
    """
    Return a directly occupied spot to the pool.

    Only succeeds while `customer_id` still holds the spot.
    """
    result = await db.execute(
        update(QueueSpot)
        .where(QueueSpot.id == spot_id, QueueSpot.customer_id == customer_id)
        .values(
            status=SpotStatus.AVAILABLE.value,
            customer_id=None,
            reservation_id=None,
            occupied_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_reservation_spots(db: AsyncSession, reservation_id: uuid.UUID) -> int:
    """Release every spot held for a reservation, claimed or not."""
    result = await db.execute(
        update(QueueSpot)
        .where(QueueSpot.reservation_id == reservation_id)
        .values(
            status=SpotStatus.AVAILABLE.value,
            customer_id=None,
            reservation_id=None,
            occupied_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
