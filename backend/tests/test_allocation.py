"""Allocation engine tests: direct joins, reservations, leaving and cancelling."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from hauntq.models import Customer, Reservation, ReservationStatus, SpotStatus
from hauntq.services import allocation
from hauntq.services.allocation import _occupy_spot
from hauntq.services.customer_registry import get_or_create_customer
from hauntq.services.results import AlreadyInQueue, ErrorCode
from hauntq.utils.timezone import utc_now


def _ok(result):
    assert result.success, f"{result.code}: {result.message}"
    return result.data


def _statuses(spots) -> list[str]:
    return [s.status for s in spots]


# ============== Direct joins ==============

async def test_sequential_joins_fill_spots_in_order(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)

    numbers = []
    for n in range(1, 4):
        spot = _ok(await allocation.join_queue(session_factory, queue_id, customer_factory(n)))
        numbers.append(spot.spot_number)
        assert spot.status == SpotStatus.OCCUPIED.value
        assert spot.queue.haunted_house.name == "Asylum"

    assert numbers == [1, 2, 3]

    overflow = await allocation.join_queue(session_factory, queue_id, customer_factory(4))
    assert not overflow.success
    assert overflow.code == ErrorCode.NO_AVAILABLE_SPOTS

    spots = await read_spots(queue_id)
    assert [s.customer_id for s in spots] == ["HS0001", "HS0002", "HS0003"]


async def test_customer_can_hold_only_one_spot(session_factory, make_queue, read_spots, customer_factory) -> None:
    first_queue = await make_queue(max_customers=2)
    second_queue = await make_queue(max_customers=2, queue_number=2)
    data = customer_factory(1)

    _ok(await allocation.join_queue(session_factory, first_queue, data))
    again = await allocation.join_queue(session_factory, first_queue, data)
    elsewhere = await allocation.join_queue(session_factory, second_queue, data)

    assert again.code == ErrorCode.ALREADY_IN_QUEUE
    assert elsewhere.code == ErrorCode.ALREADY_IN_QUEUE
    assert _statuses(await read_spots(second_queue)) == ["available", "available"]


async def test_join_unknown_queue(session_factory, customer_factory) -> None:
    result = await allocation.join_queue(session_factory, uuid.uuid4(), customer_factory(1))
    assert result.code == ErrorCode.NOT_FOUND


async def test_claim_is_conditional_on_spot_being_available(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=1)
    for n in (1, 2):
        await get_or_create_customer(session_factory, customer_factory(n))
    (spot,) = await read_spots(queue_id)

    async with session_factory() as db:
        now = utc_now()
        assert await _occupy_spot(db, spot.id, "HS0001", now)
        # The second claimant loses the race
        assert not await _occupy_spot(db, spot.id, "HS0002", now)
        await db.commit()

    (spot,) = await read_spots(queue_id)
    assert spot.customer_id == "HS0001"


async def test_unique_customer_constraint_backs_the_pre_check(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=2)
    await get_or_create_customer(session_factory, customer_factory(1))
    first, second = await read_spots(queue_id)

    async with session_factory() as db:
        now = utc_now()
        assert await _occupy_spot(db, first.id, "HS0001", now)
        with pytest.raises(AlreadyInQueue):
            await _occupy_spot(db, second.id, "HS0001", now)
        await db.rollback()


# ============== Creating reservations ==============

async def test_create_reservation_holds_exactly_max_spots(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)
    before = utc_now()

    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 3, customer_factory(1)))

    after = utc_now()
    assert reservation.status == ReservationStatus.ACTIVE.value
    assert reservation.current_spots == 1
    assert reservation.max_spots == 3
    assert len(reservation.code) == 6
    assert before + timedelta(minutes=15) <= reservation.expires_at <= after + timedelta(minutes=15)
    assert reservation.representative.student_id == "HS0001"
    assert reservation.queue.haunted_house.name == "Asylum"

    spots = await read_spots(queue_id)
    assert _statuses(spots) == ["reserved", "reserved", "reserved"]
    assert all(s.reservation_id == reservation.id for s in spots)
    # Representative sits on the lowest held spot
    assert [s.customer_id for s in spots] == ["HS0001", None, None]


async def test_create_reservation_over_capacity_changes_nothing(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)
    _ok(await allocation.join_queue(session_factory, queue_id, customer_factory(9)))

    result = await allocation.create_reservation(session_factory, queue_id, 3, customer_factory(1))

    assert result.code == ErrorCode.NO_AVAILABLE_SPOTS
    assert "Only 2 spots left" in result.message
    assert _statuses(await read_spots(queue_id)) == ["occupied", "available", "available"]
    async with session_factory() as db:
        assert await db.scalar(select(func.count(Reservation.id))) == 0


async def test_create_reservation_rejects_bad_group_size(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=20)

    too_small = await allocation.create_reservation(session_factory, queue_id, 1, customer_factory(1))
    too_big = await allocation.create_reservation(session_factory, queue_id, 11, customer_factory(1))

    assert too_small.code == ErrorCode.INVALID_INPUT
    assert too_big.code == ErrorCode.INVALID_INPUT


async def test_reservation_attempt_limit(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=5)
    data = customer_factory(1)
    await get_or_create_customer(session_factory, data)
    async with session_factory() as db:
        await db.execute(
            update(Customer).where(Customer.student_id == "HS0001").values(reservation_attempts=2)
        )
        await db.commit()

    result = await allocation.create_reservation(session_factory, queue_id, 2, data)
    assert result.code == ErrorCode.MAX_RESERVATION_ATTEMPTS

    # Direct joins are still allowed
    _ok(await allocation.join_queue(session_factory, queue_id, data))


async def test_create_reservation_while_holding_a_spot(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=5)
    _ok(await allocation.join_queue(session_factory, queue_id, customer_factory(1)))

    result = await allocation.create_reservation(session_factory, queue_id, 2, customer_factory(1))
    assert result.code == ErrorCode.ALREADY_IN_QUEUE


# ============== Joining reservations ==============

async def test_join_reservation_counts_members_and_completes_once(
    session_factory, make_queue, read_spots, read_reservation, customer_factory,
) -> None:
    queue_id = await make_queue(max_customers=4)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 3, customer_factory(1)))

    spot = _ok(await allocation.join_reservation(session_factory, reservation.code.lower(), customer_factory(2)))
    assert spot.spot_number == 2
    assert spot.status == SpotStatus.RESERVED.value
    assert (await read_reservation(reservation.id)).current_spots == 2

    spot = _ok(await allocation.join_reservation(session_factory, reservation.code, customer_factory(3)))
    stored = await read_reservation(reservation.id)
    assert stored.current_spots == 3
    assert stored.status == ReservationStatus.COMPLETED.value
    # Filled groups turn into plain occupied spots
    assert spot.status == SpotStatus.OCCUPIED.value
    spots = await read_spots(queue_id)
    assert _statuses(spots) == ["occupied", "occupied", "occupied", "available"]
    assert all(s.reservation_id is None for s in spots)

    late = await allocation.join_reservation(session_factory, reservation.code, customer_factory(4))
    assert late.code == ErrorCode.RESERVATION_FULL
    assert (await read_reservation(reservation.id)).current_spots == 3


async def test_join_reservation_rejections(session_factory, make_queue, customer_factory) -> None:
    queue_id = await make_queue(max_customers=6)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 2, customer_factory(1)))

    unknown = await allocation.join_reservation(session_factory, "ZZZZZZ", customer_factory(2))
    assert unknown.code == ErrorCode.INVALID_RESERVATION_CODE

    own = await allocation.join_reservation(session_factory, reservation.code, customer_factory(1))
    assert own.code == ErrorCode.ALREADY_IN_QUEUE

    async with session_factory() as db:
        await db.execute(
            update(Reservation)
            .where(Reservation.id == reservation.id)
            .values(status=ReservationStatus.CANCELLED.value)
        )
        await db.commit()

    cancelled = await allocation.join_reservation(session_factory, reservation.code, customer_factory(2))
    assert cancelled.code == ErrorCode.CANNOT_JOIN
    assert "cancelled" in cancelled.message


async def test_join_reservation_after_deadline(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 3, customer_factory(1)))

    async with session_factory() as db:
        await db.execute(
            update(Reservation)
            .where(Reservation.id == reservation.id)
            .values(expires_at=utc_now() - timedelta(minutes=1))
        )
        await db.commit()

    result = await allocation.join_reservation(session_factory, reservation.code, customer_factory(2))

    assert result.code == ErrorCode.RESERVATION_EXPIRED
    assert _statuses(await read_spots(queue_id)) == ["available", "available", "available"]


# ============== Leaving ==============

async def test_leave_direct_spot(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=2)
    _ok(await allocation.join_queue(session_factory, queue_id, customer_factory(1)))

    result = await allocation.leave_queue(session_factory, "HS0001")

    assert result.success
    (first, _) = await read_spots(queue_id)
    assert first.status == SpotStatus.AVAILABLE.value
    assert first.customer_id is None and first.occupied_at is None


async def test_leave_without_spot(session_factory) -> None:
    result = await allocation.leave_queue(session_factory, "HS0404")
    assert result.code == ErrorCode.NOT_IN_QUEUE


async def test_representative_leaving_cancels_the_group(
    session_factory, make_queue, read_spots, read_reservation, customer_factory,
) -> None:
    queue_id = await make_queue(max_customers=4)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 4, customer_factory(1)))
    for n in (2, 3):
        _ok(await allocation.join_reservation(session_factory, reservation.code, customer_factory(n)))

    result = await allocation.leave_queue(session_factory, "HS0001")

    assert result.success
    assert (await read_reservation(reservation.id)).status == ReservationStatus.CANCELLED.value
    spots = await read_spots(queue_id)
    assert _statuses(spots) == ["available"] * 4
    assert all(s.customer_id is None and s.reservation_id is None for s in spots)


async def test_member_leaving_returns_the_spot_to_the_group(
    session_factory, make_queue, read_spots, read_reservation, customer_factory,
) -> None:
    queue_id = await make_queue(max_customers=3)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 3, customer_factory(1)))
    _ok(await allocation.join_reservation(session_factory, reservation.code, customer_factory(2)))

    result = await allocation.leave_queue(session_factory, "HS0002")

    assert result.success
    stored = await read_reservation(reservation.id)
    assert stored.status == ReservationStatus.ACTIVE.value
    assert stored.current_spots == 1
    spots = await read_spots(queue_id)
    assert _statuses(spots) == ["reserved"] * 3
    assert [s.customer_id for s in spots] == ["HS0001", None, None]

    # The freed spot can be claimed again
    _ok(await allocation.join_reservation(session_factory, reservation.code, customer_factory(3)))
    assert (await read_reservation(reservation.id)).current_spots == 2


# ============== Admin cancel ==============

async def test_cancel_reservation(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=3)
    reservation = _ok(await allocation.create_reservation(session_factory, queue_id, 2, customer_factory(1)))

    cancelled = _ok(await allocation.cancel_reservation(session_factory, reservation.id))
    assert cancelled.status == ReservationStatus.CANCELLED.value
    assert _statuses(await read_spots(queue_id)) == ["available"] * 3

    again = await allocation.cancel_reservation(session_factory, reservation.id)
    assert again.code == ErrorCode.CANNOT_CANCEL


async def test_cancel_unknown_reservation(session_factory) -> None:
    result = await allocation.cancel_reservation(session_factory, uuid.uuid4())
    assert result.code == ErrorCode.NOT_FOUND


# ============== Bulk assignment ==============

async def test_assign_customers_to_remaining_spots(session_factory, make_queue, read_spots, customer_factory) -> None:
    queue_id = await make_queue(max_customers=2)
    for n in (1, 2, 3):
        await get_or_create_customer(session_factory, customer_factory(n))
    _ok(await allocation.join_queue(session_factory, queue_id, customer_factory(1)))

    result = await allocation.assign_customers_to_remaining_spots(
        session_factory, ["HS0001", "HS0002", "HS0003", "HS0404"],
    )

    assert result.success
    assigned = result.data
    assert [s.customer_id for s in assigned] == ["HS0002"]
    assert [s.customer_id for s in await read_spots(queue_id)] == ["HS0001", "HS0002"]


async def test_assign_requires_customers(session_factory) -> None:
    result = await allocation.assign_customers_to_remaining_spots(session_factory, [])
    assert result.code == ErrorCode.INVALID_INPUT
