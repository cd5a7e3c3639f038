"""Test fixtures for the HauntQ backend."""

import os
import tempfile
import uuid
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# The engine is built from settings at import time
_DB_PATH = Path(tempfile.mkdtemp(prefix="hauntq-tests-")) / "test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["DB_RETRY_BASE_DELAY"] = "0"
os.environ["APP_ENV"] = "test"
os.environ.pop("CRON_SECRET", None)
os.environ.pop("SELECTION_DEADLINE", None)

import hauntq.models  # noqa: E402,F401
from hauntq.auth.jwt import create_access_token  # noqa: E402
from hauntq.auth.password import hash_password  # noqa: E402
from hauntq.database import Base, async_session_maker, engine  # noqa: E402
from hauntq.main import app  # noqa: E402
from hauntq.models import (  # noqa: E402
    Customer,
    HauntedHouse,
    Queue,
    QueueSpot,
    Reservation,
    User,
    UserRole,
)
from hauntq.schemas.queue import CustomerData  # noqa: E402
from hauntq.services.spot_pool import create_pool  # noqa: E402

CUSTOMER_PASSWORD = "boo-boo-boo"
ADMIN_PASSWORD = "Adm1nPass!"


@pytest_asyncio.fixture()
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Drop and recreate the schema, then hand out the app's session factory."""
    await engine.dispose()
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    yield async_session_maker
    await engine.dispose()


@pytest_asyncio.fixture()
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def flaky_factory(session_factory):
    """Wrap the session factory so that opening the first `failures` sessions fails."""

    def _make(failures: int = 1):
        remaining = failures

        def factory():
            nonlocal remaining
            if remaining > 0:
                remaining -= 1
                raise OperationalError("SELECT 1", {}, Exception("connection reset"))
            return session_factory()

        return factory

    return _make


@pytest.fixture()
def customer_factory():
    """Build CustomerData for student HS<n>."""

    def _make(n: int, **overrides) -> CustomerData:
        data = {
            "student_id": f"HS{n:04d}",
            "name": f"Student {n}",
            "email": f"student{n}@example.com",
            "homeroom": "11A1",
            "ticket_type": "Standard",
        }
        data.update(overrides)
        return CustomerData(**data)

    return _make


@pytest.fixture()
def make_queue(session_factory):
    """Create a queue with `max_customers` available spots, returns its id."""

    async def _make(max_customers: int = 5, house_name: str = "Asylum", queue_number: int = 1) -> uuid.UUID:
        async with session_factory() as session:
            if not await session.get(HauntedHouse, house_name):
                session.add(HauntedHouse(name=house_name, duration=10, break_time_per_queue=0))
                await session.flush()
            queue = Queue(
                id=uuid.uuid4(),
                haunted_house_name=house_name,
                queue_number=queue_number,
                max_customers=max_customers,
            )
            session.add(queue)
            await session.flush()
            await create_pool(session, queue.id, max_customers)
            await session.commit()
            return queue.id

    return _make


@pytest.fixture()
def read_spots(session_factory):
    """Fresh snapshot of a queue's spots in spot number order."""

    async def _read(queue_id: uuid.UUID) -> list[QueueSpot]:
        async with session_factory() as session:
            result = await session.execute(
                select(QueueSpot)
                .where(QueueSpot.queue_id == queue_id)
                .order_by(QueueSpot.spot_number)
            )
            return list(result.scalars().all())

    return _read


@pytest.fixture()
def read_reservation(session_factory):
    """Fresh snapshot of a reservation."""

    async def _read(reservation_id: uuid.UUID) -> Reservation:
        async with session_factory() as session:
            return await session.get(Reservation, reservation_id)

    return _read


@pytest_asyncio.fixture()
async def api(session_factory, make_queue) -> AsyncIterator[dict[str, object]]:
    """Yield an async client with an admin, four customers and one queue."""
    roster = [
        ("HS1001", "Linh Tran", "linh@example.com", "Standard"),
        ("HS1002", "Minh Pham", "minh@example.com", "Standard"),
        ("HS1003", "An Nguyen", "an@example.com", "Standard"),
        ("HS1004", "Bao Le", "bao@example.com", "Juggler"),
    ]

    async with session_factory() as session:
        admin = User(
            id=uuid.uuid4(),
            email="admin@example.com",
            password_hash=hash_password(ADMIN_PASSWORD),
            display_name="Admin",
            role=UserRole.ADMIN.value,
        )
        session.add(admin)

        headers = {}
        customer_data = {}
        for student_id, name, email, ticket_type in roster:
            session.add(Customer(
                student_id=student_id,
                name=name,
                email=email,
                homeroom="11A1",
                ticket_type=ticket_type,
            ))
            user = User(
                id=uuid.uuid4(),
                email=email,
                password_hash=hash_password(CUSTOMER_PASSWORD),
                display_name=name,
                role=UserRole.CUSTOMER.value,
            )
            session.add(user)
            headers[student_id] = {
                "Authorization": f"Bearer {create_access_token(user.id, user.role)}"
            }
            customer_data[student_id] = {
                "student_id": student_id,
                "name": name,
                "email": email,
                "homeroom": "11A1",
                "ticket_type": ticket_type,
            }
        await session.commit()

    queue_id = await make_queue(max_customers=4)

    context = {
        "admin_email": admin.email,
        "admin_headers": {"Authorization": f"Bearer {create_access_token(admin.id, admin.role)}"},
        "headers": headers,
        "customer_data": customer_data,
        "queue_id": queue_id,
    }

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        context["client"] = client
        yield context
