"""Customer registry tests."""

from hauntq.services.customer_registry import get_customer, get_or_create_customer, record_expired_attempt


async def test_get_or_create_is_idempotent(session_factory, customer_factory) -> None:
    data = customer_factory(1, email="Student1@Example.com")

    first = await get_or_create_customer(session_factory, data)
    second = await get_or_create_customer(session_factory, customer_factory(1, name="Renamed"))

    assert first.student_id == second.student_id == "HS0001"
    assert first.reservation_attempts == 0
    assert first.email == "student1@example.com"
    # Existing records are not overwritten
    assert second.name == "Student 1"


async def test_record_expired_attempt_increments_in_store(session_factory, customer_factory) -> None:
    await get_or_create_customer(session_factory, customer_factory(2))

    async with session_factory() as db:
        await record_expired_attempt(db, "HS0002")
        await record_expired_attempt(db, "HS0002")
        await db.commit()

    async with session_factory() as db:
        customer = await get_customer(db, "HS0002")
    assert customer.reservation_attempts == 2


async def test_unknown_customer(db) -> None:
    assert await get_customer(db, "nobody") is None
