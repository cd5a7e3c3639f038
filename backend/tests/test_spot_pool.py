"""Spot pool creation and resizing tests."""

import uuid

from sqlalchemy import update

from hauntq.models import QueueSpot, SpotStatus
from hauntq.services.spot_pool import release_reservation_spots, release_spot, resize_pool


async def test_create_pool_numbers_spots_from_one(make_queue, read_spots) -> None:
    queue_id = await make_queue(max_customers=4)

    spots = await read_spots(queue_id)

    assert [s.spot_number for s in spots] == [1, 2, 3, 4]
    assert all(s.status == SpotStatus.AVAILABLE.value for s in spots)
    assert all(s.customer_id is None and s.reservation_id is None for s in spots)


async def test_grow_appends_available_spots(session_factory, make_queue, read_spots) -> None:
    queue_id = await make_queue(max_customers=3)

    async with session_factory() as db:
        assert await resize_pool(db, queue_id, 5) == 5
        await db.commit()

    spots = await read_spots(queue_id)
    assert [s.spot_number for s in spots] == [1, 2, 3, 4, 5]
    assert spots[-1].status == SpotStatus.AVAILABLE.value


async def test_shrink_deletes_only_available_spots(session_factory, make_queue, read_spots) -> None:
    queue_id = await make_queue(max_customers=5)
    spots = await read_spots(queue_id)

    async with session_factory() as db:
        # Spot 4 is taken, spot 5 is free
        await db.execute(
            update(QueueSpot)
            .where(QueueSpot.id == spots[3].id)
            .values(status=SpotStatus.OCCUPIED.value, customer_id="HS0001")
        )
        await db.commit()

    async with session_factory() as db:
        assert await resize_pool(db, queue_id, 2) == 3
        await db.commit()

    remaining = await read_spots(queue_id)
    assert [s.spot_number for s in remaining] == [1, 2, 4]
    assert remaining[-1].customer_id == "HS0001"


async def test_grow_after_blocked_shrink_keeps_numbers_unique(session_factory, make_queue, read_spots) -> None:
    queue_id = await make_queue(max_customers=3)
    spots = await read_spots(queue_id)

    async with session_factory() as db:
        await db.execute(
            update(QueueSpot)
            .where(QueueSpot.id == spots[2].id)
            .values(status=SpotStatus.OCCUPIED.value, customer_id="HS0001")
        )
        await db.commit()

    async with session_factory() as db:
        await resize_pool(db, queue_id, 1)
        await resize_pool(db, queue_id, 4)
        await db.commit()

    numbers = [s.spot_number for s in await read_spots(queue_id)]
    assert numbers == [1, 3, 4, 5]


async def test_release_helpers_reset_spots(session_factory, make_queue, read_spots) -> None:
    queue_id = await make_queue(max_customers=2)
    first, _second = await read_spots(queue_id)

    async with session_factory() as db:
        await db.execute(
            update(QueueSpot)
            .where(QueueSpot.id == first.id)
            .values(status=SpotStatus.OCCUPIED.value, customer_id="HS0001")
        )
        await db.commit()

    async with session_factory() as db:
        assert not await release_spot(db, first.id, "HS0002")
        assert await release_spot(db, first.id, "HS0001")
        assert await release_reservation_spots(db, uuid.uuid4()) == 0
        await db.commit()

    spots = await read_spots(queue_id)
    assert all(s.status == SpotStatus.AVAILABLE.value and s.customer_id is None for s in spots)
