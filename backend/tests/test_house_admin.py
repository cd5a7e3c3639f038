"""House and queue administration tests."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from hauntq.models import HauntedHouse, Queue, QueueSpot, Reservation, SpotStatus
from hauntq.schemas.admin import (
    HauntedHouseCreate,
    HauntedHouseUpdate,
    QueueBatchCreate,
    QueueCreate,
    QueueUpdate,
)
from hauntq.services import allocation, house_admin
from hauntq.services.results import ErrorCode

OPENING = datetime(2025, 10, 31, 11, 0, tzinfo=timezone.utc)


async def _count(session_factory, model) -> int:
    async with session_factory() as db:
        return await db.scalar(select(func.count()).select_from(model))


async def test_create_house(session_factory) -> None:
    result = await house_admin.create_house(
        session_factory, HauntedHouseCreate(name="Asylum", duration=12, break_time_per_queue=3)
    )

    assert result.success
    assert result.data.name == "Asylum"
    assert result.data.duration == 12


async def test_duplicate_house_is_rejected(session_factory) -> None:
    await house_admin.create_house(session_factory, HauntedHouseCreate(name="Asylum"))

    result = await house_admin.create_house(session_factory, HauntedHouseCreate(name="Asylum"))

    assert not result.success
    assert result.code == ErrorCode.ALREADY_EXISTS
    assert await _count(session_factory, HauntedHouse) == 1


async def test_update_house_keeps_unset_fields(session_factory) -> None:
    await house_admin.create_house(
        session_factory, HauntedHouseCreate(name="Asylum", duration=10, break_time_per_queue=5)
    )

    result = await house_admin.update_house(
        session_factory, "Asylum", HauntedHouseUpdate(duration=20)
    )

    assert result.success
    assert result.data.duration == 20
    assert result.data.break_time_per_queue == 5


async def test_update_unknown_house(session_factory) -> None:
    result = await house_admin.update_house(session_factory, "Nowhere", HauntedHouseUpdate(duration=20))
    assert result.code == ErrorCode.NOT_FOUND


async def test_create_queue_creates_its_spots(session_factory, read_spots) -> None:
    await house_admin.create_house(session_factory, HauntedHouseCreate(name="Asylum"))

    result = await house_admin.create_queue(
        session_factory,
        QueueCreate(
            haunted_house_name="Asylum",
            queue_number=1,
            max_customers=4,
            queue_start_time=OPENING,
            queue_end_time=OPENING + timedelta(minutes=10),
        ),
    )

    assert result.success
    queue = result.data
    assert queue.queue_start_time == datetime(2025, 10, 31, 11, 0)
    spots = await read_spots(queue.id)
    assert [s.spot_number for s in spots] == [1, 2, 3, 4]
    assert {s.status for s in spots} == {SpotStatus.AVAILABLE.value}


async def test_create_queue_rejects_bad_input(session_factory) -> None:
    await house_admin.create_house(session_factory, HauntedHouseCreate(name="Asylum"))
    await house_admin.create_queue(
        session_factory, QueueCreate(haunted_house_name="Asylum", queue_number=1, max_customers=2)
    )

    duplicate = await house_admin.create_queue(
        session_factory, QueueCreate(haunted_house_name="Asylum", queue_number=1, max_customers=2)
    )
    unknown_house = await house_admin.create_queue(
        session_factory, QueueCreate(haunted_house_name="Nowhere", queue_number=1, max_customers=2)
    )
    backwards = await house_admin.create_queue(
        session_factory,
        QueueCreate(
            haunted_house_name="Asylum",
            queue_number=2,
            max_customers=2,
            queue_start_time=OPENING,
            queue_end_time=OPENING - timedelta(minutes=1),
        ),
    )

    assert duplicate.code == ErrorCode.ALREADY_EXISTS
    assert duplicate.message == "Queue 1 for Asylum already exists"
    assert unknown_house.code == ErrorCode.NOT_FOUND
    assert backwards.code == ErrorCode.INVALID_INPUT
    assert await _count(session_factory, Queue) == 1


async def test_update_queue_number_conflict(session_factory, make_queue) -> None:
    first = await make_queue(max_customers=2, queue_number=1)
    await make_queue(max_customers=2, queue_number=2)

    conflict = await house_admin.update_queue(session_factory, first, QueueUpdate(queue_number=2))
    same_number = await house_admin.update_queue(session_factory, first, QueueUpdate(queue_number=1))

    assert conflict.code == ErrorCode.ALREADY_EXISTS
    assert same_number.success


async def test_update_queue_resizes_pool(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)
    assert (await allocation.join_queue(session_factory, queue_id, customer_factory(1))).success

    grown = await house_admin.update_queue(session_factory, queue_id, QueueUpdate(max_customers=5))
    assert grown.success
    assert grown.data.max_customers == 5
    assert [s.spot_number for s in await read_spots(queue_id)] == [1, 2, 3, 4, 5]

    shrunk = await house_admin.update_queue(session_factory, queue_id, QueueUpdate(max_customers=1))
    assert shrunk.success
    spots = await read_spots(queue_id)
    assert [s.spot_number for s in spots] == [1]
    assert spots[0].customer_id == "HS0001"


async def test_delete_queue_removes_spots_and_reservations(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=4)
    await allocation.create_reservation(session_factory, queue_id, 2, customer_factory(1))

    result = await house_admin.delete_queue(session_factory, queue_id)

    assert result.success
    assert result.message == "Queue deleted successfully"
    assert await _count(session_factory, Queue) == 0
    assert await _count(session_factory, QueueSpot) == 0
    assert await _count(session_factory, Reservation) == 0


async def test_delete_house_cascades(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3, queue_number=1)
    await make_queue(max_customers=3, queue_number=2)
    await make_queue(max_customers=2, house_name="The Well")
    await allocation.create_reservation(session_factory, queue_id, 2, customer_factory(1))

    result = await house_admin.delete_house(session_factory, "Asylum")

    assert result.success
    assert await _count(session_factory, HauntedHouse) == 1
    assert await _count(session_factory, Queue) == 1
    assert await _count(session_factory, QueueSpot) == 2
    assert await _count(session_factory, Reservation) == 0


async def test_batch_schedules_consecutive_queues(session_factory, read_spots) -> None:
    await house_admin.create_house(
        session_factory, HauntedHouseCreate(name="Asylum", duration=10, break_time_per_queue=5)
    )

    result = await house_admin.create_batch_queues(
        session_factory,
        QueueBatchCreate(
            haunted_house_name="Asylum",
            number_of_queues=3,
            max_customers=2,
            first_queue_start_time=OPENING,
        ),
    )

    assert result.success
    assert result.message == "Successfully created 3 queues"
    queues = result.data
    assert [q.queue_number for q in queues] == [1, 2, 3]
    assert [q.queue_start_time.strftime("%H:%M") for q in queues] == ["11:00", "11:15", "11:30"]
    assert [q.queue_end_time.strftime("%H:%M") for q in queues] == ["11:10", "11:25", "11:40"]
    for queue in queues:
        assert len(await read_spots(queue.id)) == 2


async def test_batch_updates_existing_queues(session_factory, make_queue, read_spots) -> None:
    existing = await make_queue(max_customers=2, queue_number=2)

    result = await house_admin.create_batch_queues(
        session_factory,
        QueueBatchCreate(
            haunted_house_name="Asylum",
            starting_queue_number=2,
            number_of_queues=2,
            max_customers=4,
            duration_per_queue=20,
            break_time_per_queue=0,
            first_queue_start_time=OPENING,
        ),
    )

    assert result.success
    first, second = result.data
    assert first.id == existing
    assert first.queue_end_time - first.queue_start_time == timedelta(minutes=20)
    assert second.queue_start_time == first.queue_end_time
    assert len(await read_spots(existing)) == 4
    assert await _count(session_factory, Queue) == 2
