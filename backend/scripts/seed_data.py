"""
Seed the database with initial data.

Run with: python -m scripts.seed_data
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select

from hauntq.auth.password import hash_password
from hauntq.database import async_session_maker, init_db
from hauntq.models import Customer, HauntedHouse, Queue, User, UserRole
from hauntq.services.spot_pool import create_pool
from hauntq.utils.timezone import format_local_time, to_utc


# Opening night, venue local time
FIRST_QUEUE_START = datetime(2025, 10, 31, 18, 0)

# Haunted houses and how their queues are scheduled
HAUNTED_HOUSES = [
    {
        "name": "Asylum",
        "duration": 10,
        "break_time_per_queue": 5,
        "queues": 6,
        "max_customers": 8,
    },
    {
        "name": "Carnival of Terror",
        "duration": 15,
        "break_time_per_queue": 5,
        "queues": 4,
        "max_customers": 10,
    },
    {
        "name": "The Well",
        "duration": 8,
        "break_time_per_queue": 2,
        "queues": 8,
        "max_customers": 6,
    },
]

# Demo customers (a roster normally comes from the ticketing system)
DEMO_CUSTOMERS = [
    {"student_id": "HS1001", "name": "Linh Tran", "email": "linh@example.com", "homeroom": "11A1", "ticket_type": "Standard"},
    {"student_id": "HS1002", "name": "Minh Pham", "email": "minh@example.com", "homeroom": "11A2", "ticket_type": "Standard"},
    {"student_id": "HS1003", "name": "An Nguyen", "email": "an@example.com", "homeroom": "12B1", "ticket_type": "VIP"},
    {"student_id": "HS1004", "name": "Bao Le", "email": "bao@example.com", "homeroom": "10C3", "ticket_type": "Juggler"},
]

DEMO_PASSWORD = os.environ.get("SEED_DEMO_PASSWORD", "spooky-season")
ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "change-me-admin")


async def seed_houses() -> None:
    """Seed haunted houses with a night of queues each."""
    async with async_session_maker() as session:
        for house_data in HAUNTED_HOUSES:
            house = await session.get(HauntedHouse, house_data["name"])
            if house:
                print(f"✓ {house.name} exists")
                continue

            house = HauntedHouse(
                name=house_data["name"],
                duration=house_data["duration"],
                break_time_per_queue=house_data["break_time_per_queue"],
            )
            session.add(house)
            await session.flush()
            print(f"+ Created haunted house: {house.name}")

            start = to_utc(FIRST_QUEUE_START)
            for number in range(1, house_data["queues"] + 1):
                end = start + timedelta(minutes=house.duration)
                queue = Queue(
                    id=uuid.uuid4(),
                    haunted_house_name=house.name,
                    queue_number=number,
                    max_customers=house_data["max_customers"],
                    queue_start_time=start,
                    queue_end_time=end,
                )
                session.add(queue)
                await session.flush()
                await create_pool(session, queue.id, queue.max_customers)
                print(
                    f"  + Queue {number}: {format_local_time(start)} - "
                    f"{format_local_time(end, fmt='%H:%M')} ({queue.max_customers} spots)"
                )
                start = end + timedelta(minutes=house.break_time_per_queue)

        await session.commit()


async def seed_users() -> None:
    """Seed the admin account and demo customers with their accounts."""
    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == ADMIN_EMAIL))
        if result.scalar_one_or_none():
            print(f"✓ Admin {ADMIN_EMAIL} exists")
        else:
            session.add(User(
                id=uuid.uuid4(),
                email=ADMIN_EMAIL,
                password_hash=hash_password(ADMIN_PASSWORD),
                display_name="Admin",
                role=UserRole.ADMIN.value,
            ))
            print(f"+ Created admin: {ADMIN_EMAIL}")

        for customer_data in DEMO_CUSTOMERS:
            if not await session.get(Customer, customer_data["student_id"]):
                session.add(Customer(**customer_data))
                print(f"+ Created customer: {customer_data['name']}")

            result = await session.execute(
                select(User).where(User.email == customer_data["email"])
            )
            if not result.scalar_one_or_none():
                session.add(User(
                    id=uuid.uuid4(),
                    email=customer_data["email"],
                    password_hash=hash_password(DEMO_PASSWORD),
                    display_name=customer_data["name"],
                    role=UserRole.CUSTOMER.value,
                ))

        await session.commit()


async def main():
    """Main entry point."""
    print("=" * 50)
    print("Seeding HauntQ Database")
    print("=" * 50)

    print("\nInitializing database...")
    await init_db()

    print("\nSeeding haunted houses...")
    await seed_houses()

    print("\nSeeding users...")
    await seed_users()

    print("\n✓ Seed data complete!")


if __name__ == "__main__":
    asyncio.run(main())
