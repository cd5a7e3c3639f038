"""
Public read endpoints for haunted houses and queues.

Stale reservations are reconciled before every read so spot counts
never include holds that have already expired.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.database import get_db, get_session_factory
from hauntq.routers.errors import raise_error
from hauntq.schemas.queue import HauntedHouseWithQueuesResponse, QueueWithStatsResponse
from hauntq.services.queries import get_house_with_stats, get_queue_with_availability, list_houses_with_stats
from hauntq.services.reconciler import reconcile_reservations
from hauntq.services.results import ErrorCode

router = APIRouter()


@router.get("/haunted-houses", response_model=list[HauntedHouseWithQueuesResponse])
async def list_haunted_houses(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """List haunted houses with their queues and current spot counts."""
    await reconcile_reservations(session_factory)
    return await list_houses_with_stats(db)


@router.get("/haunted-houses/{name}", response_model=HauntedHouseWithQueuesResponse)
async def get_haunted_house(
    name: str,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Get one haunted house with its queues and current spot counts."""
    await reconcile_reservations(session_factory)
    house = await get_house_with_stats(db, name)
    if not house:
        raise_error(ErrorCode.NOT_FOUND, "Haunted house not found")
    return house


@router.get("/queues/{queue_id}", response_model=QueueWithStatsResponse)
async def get_queue(
    queue_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Get one queue with its house and current spot counts."""
    await reconcile_reservations(session_factory)
    queue = await get_queue_with_availability(db, queue_id)
    if not queue:
        raise_error(ErrorCode.NOT_FOUND, "Queue not found")
    return queue
