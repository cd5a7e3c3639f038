"""
House and queue administration.

Deletes cascade explicitly: spots first (they point at reservations),
then reservations, queues and finally the house.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.models import HauntedHouse, Queue, QueueSpot, Reservation
from hauntq.schemas.admin import (
    HauntedHouseCreate,
    HauntedHouseUpdate,
    QueueBatchCreate,
    QueueCreate,
    QueueUpdate,
)
from hauntq.services.results import ActionResult, AlreadyExists, InvalidInput, NotFound, action
from hauntq.services.spot_pool import create_pool, resize_pool
from hauntq.utils.timezone import normalize_input_time

logger = logging.getLogger(__name__)


async def _get_house(db: AsyncSession, name: str) -> HauntedHouse:
    house = await db.get(HauntedHouse, name)
    if not house:
        raise NotFound("Haunted house not found")
    return house


async def _get_queue(db: AsyncSession, queue_id: uuid.UUID) -> Queue:
    queue = await db.get(Queue, queue_id)
    if not queue:
        raise NotFound("Queue not found")
    return queue


async def _find_queue(db: AsyncSession, house_name: str, queue_number: int) -> Queue | None:
    result = await db.execute(
        select(Queue).where(
            Queue.haunted_house_name == house_name,
            Queue.queue_number == queue_number,
        )
    )
    return result.scalar_one_or_none()


async def _delete_queues(db: AsyncSession, queue_ids: list[uuid.UUID]) -> None:
    if not queue_ids:
        return
    await db.execute(delete(QueueSpot).where(QueueSpot.queue_id.in_(queue_ids)))
    await db.execute(delete(Reservation).where(Reservation.queue_id.in_(queue_ids)))
    await db.execute(delete(Queue).where(Queue.id.in_(queue_ids)))


def _check_schedule(start, end) -> None:
    if start and end and end <= start:
        raise InvalidInput("Queue end time must be after its start time")


# ============== Haunted houses ==============

@action("Failed to create haunted house")
async def create_house(
    session_factory: async_sessionmaker[AsyncSession],
    data: HauntedHouseCreate,
) -> HauntedHouse:
    async with session_factory() as db:
        async with db.begin():
            if await db.get(HauntedHouse, data.name):
                raise AlreadyExists("A haunted house with this name already exists")
            house = HauntedHouse(
                name=data.name,
                duration=data.duration,
                break_time_per_queue=data.break_time_per_queue,
            )
            db.add(house)

    logger.info("Created haunted house %s", data.name)
    return house


@action("Failed to update haunted house")
async def update_house(
    session_factory: async_sessionmaker[AsyncSession],
    name: str,
    data: HauntedHouseUpdate,
) -> HauntedHouse:
    async with session_factory() as db:
        async with db.begin():
            house = await _get_house(db, name)
            for field, value in data.model_dump(exclude_none=True).items():
                setattr(house, field, value)
    return house


@action("Failed to delete haunted house")
async def delete_house(
    session_factory: async_sessionmaker[AsyncSession],
    name: str,
) -> ActionResult:
    """Delete a house with all of its queues, spots and reservations."""
    async with session_factory() as db:
        async with db.begin():
            await _get_house(db, name)
            queue_ids = (await db.execute(
                select(Queue.id).where(Queue.haunted_house_name == name)
            )).scalars().all()
            await _delete_queues(db, list(queue_ids))
            await db.execute(delete(HauntedHouse).where(HauntedHouse.name == name))

    logger.info("Deleted haunted house %s with %d queues", name, len(queue_ids))
    return ActionResult.ok(message="Haunted house deleted successfully")


# ============== Queues ==============

@action("Failed to create queue")
async def create_queue(
    session_factory: async_sessionmaker[AsyncSession],
    data: QueueCreate,
) -> Queue:
    """Create a queue and its `max_customers` available spots."""
    start = normalize_input_time(data.queue_start_time)
    end = normalize_input_time(data.queue_end_time)
    _check_schedule(start, end)

    async with session_factory() as db:
        async with db.begin():
            await _get_house(db, data.haunted_house_name)
            if await _find_queue(db, data.haunted_house_name, data.queue_number):
                raise AlreadyExists(
                    f"Queue {data.queue_number} for {data.haunted_house_name} already exists"
                )

            queue = Queue(
                id=uuid.uuid4(),
                haunted_house_name=data.haunted_house_name,
                queue_number=data.queue_number,
                max_customers=data.max_customers,
                queue_start_time=start,
                queue_end_time=end,
            )
            db.add(queue)
            await db.flush()
            await create_pool(db, queue.id, data.max_customers)

    logger.info(
        "Created queue %s #%d with %d spots",
        data.haunted_house_name, data.queue_number, data.max_customers,
    )
    return queue


@action("Failed to update queue")
async def update_queue(
    session_factory: async_sessionmaker[AsyncSession],
    queue_id: uuid.UUID,
    data: QueueUpdate,
) -> Queue:
    """
    Update a queue's number, size or schedule.

    A new `max_customers` resizes the spot pool. Shrinking never removes
    claimed spots.
    """
    async with session_factory() as db:
        async with db.begin():
            queue = await _get_queue(db, queue_id)

            if data.queue_number is not None and data.queue_number != queue.queue_number:
                if await _find_queue(db, queue.haunted_house_name, data.queue_number):
                    raise AlreadyExists(
                        f"Queue {data.queue_number} for {queue.haunted_house_name} already exists"
                    )
                queue.queue_number = data.queue_number

            if data.queue_start_time is not None:
                queue.queue_start_time = normalize_input_time(data.queue_start_time)
            if data.queue_end_time is not None:
                queue.queue_end_time = normalize_input_time(data.queue_end_time)
            _check_schedule(queue.queue_start_time, queue.queue_end_time)

            if data.max_customers is not None and data.max_customers != queue.max_customers:
                queue.max_customers = data.max_customers
                await resize_pool(db, queue.id, data.max_customers)

    return queue


@action("Failed to delete queue")
async def delete_queue(
    session_factory: async_sessionmaker[AsyncSession],
    queue_id: uuid.UUID,
) -> ActionResult:
    """Delete a queue with its spots and reservations."""
    async with session_factory() as db:
        async with db.begin():
            queue = await _get_queue(db, queue_id)
            await _delete_queues(db, [queue.id])

    logger.info("Deleted queue %s", queue_id)
    return ActionResult.ok(message="Queue deleted successfully")


@action("Failed to create batch queues")
async def create_batch_queues(
    session_factory: async_sessionmaker[AsyncSession],
    data: QueueBatchCreate,
) -> ActionResult:
    """
    Schedule `number_of_queues` consecutive queues for a house.

    Queue numbers that already exist are rescheduled and resized instead
    of recreated.
    """
    async with session_factory() as db:
        async with db.begin():
            house = await _get_house(db, data.haunted_house_name)
            duration = timedelta(minutes=data.duration_per_queue or house.duration)
            break_minutes = data.break_time_per_queue
            if break_minutes is None:
                break_minutes = house.break_time_per_queue
            gap = timedelta(minutes=break_minutes)

            queues = []
            start = normalize_input_time(data.first_queue_start_time)
            for i in range(data.number_of_queues):
                queue_number = data.starting_queue_number + i
                end = start + duration

                queue = await _find_queue(db, house.name, queue_number)
                if queue:
                    queue.queue_start_time = start
                    queue.queue_end_time = end
                    if queue.max_customers != data.max_customers:
                        queue.max_customers = data.max_customers
                        await resize_pool(db, queue.id, data.max_customers)
                else:
                    queue = Queue(
                        id=uuid.uuid4(),
                        haunted_house_name=house.name,
                        queue_number=queue_number,
                        max_customers=data.max_customers,
                        queue_start_time=start,
                        queue_end_time=end,
                    )
                    db.add(queue)
                    await db.flush()
                    await create_pool(db, queue.id, data.max_customers)
                queues.append(queue)

                start = end + gap

    logger.info("Scheduled %d queues for %s", len(queues), house.name)
    return ActionResult.ok(queues, message=f"Successfully created {len(queues)} queues")
