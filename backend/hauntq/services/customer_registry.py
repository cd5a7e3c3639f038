"""
Customer registry - maps student ids to customer records.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.models import Customer
from hauntq.schemas.queue import CustomerData

logger = logging.getLogger(__name__)


async def get_customer(db: AsyncSession, student_id: str) -> Optional[Customer]:
    """Look up a customer by student id."""
    result = await db.execute(
        select(Customer)
        .where(Customer.student_id == student_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_customer(
    session_factory: async_sessionmaker[AsyncSession],
    data: CustomerData,
) -> Customer:
    """
    Return the customer for `data.student_id`, creating it if needed.

    Runs in its own short transaction so the record exists before any
    allocation transaction starts. Two callers racing on a new student id
    both end up with the same row: the loser of the insert re-reads it.
    """
    async with session_factory() as db:
        customer = await get_customer(db, data.student_id)
        if customer:
            return customer

        customer = Customer(
            student_id=data.student_id,
            name=data.name,
            email=str(data.email).lower(),
            homeroom=data.homeroom,
            ticket_type=data.ticket_type,
            reservation_attempts=0,
        )
        db.add(customer)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            customer = await get_customer(db, data.student_id)
            if customer is None:
                raise
            return customer

        logger.info("Registered customer %s", data.student_id)
        return customer


async def record_expired_attempt(db: AsyncSession, student_id: str) -> None:
    """Count one more expired reservation against a representative."""
    await db.execute(
        update(Customer)
        .where(Customer.student_id == student_id)
        .values(reservation_attempts=Customer.reservation_attempts + 1)
        .execution_options(synchronize_session=False)
    )
