"""
Customer endpoints - pick, group up for and give up a haunted house spot.

All endpoints require a signed-in customer account. Actions carry the
customer's details in the body; the student id there must be the
signed-in customer's own.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.auth.dependencies import get_current_customer
from hauntq.config import get_settings
from hauntq.database import get_db, get_session_factory
from hauntq.models import Customer, QueueSpot
from hauntq.routers.errors import raise_error, raise_for_result
from hauntq.schemas.queue import (
    ActionResponse,
    CreateReservationRequest,
    CustomerData,
    CustomerResponse,
    HauntedHouseResponse,
    JoinQueueRequest,
    JoinReservationRequest,
    MySpotResponse,
    QueueResponse,
    ReservationActionResponse,
    ReservationResponse,
    SpotActionResponse,
    SpotResponse,
)
from hauntq.services import allocation
from hauntq.services.queries import get_customer_spot, reservation_detail
from hauntq.services.reconciler import reconcile_reservations
from hauntq.services.results import ErrorCode
from hauntq.utils.timezone import utc_now

router = APIRouter()


def _check_selection_open() -> None:
    deadline = get_settings().selection_deadline
    if deadline is not None and utc_now() > deadline:
        raise_error(
            ErrorCode.SELECTION_DEADLINE_EXPIRED,
            "The selection deadline has passed. Spots can no longer be changed.",
        )


def _check_own_data(customer: Customer, data: CustomerData) -> None:
    if data.student_id != customer.student_id:
        raise_error(ErrorCode.UNAUTHORIZED, "You can only act for your own student id")


def _spot_response(spot: QueueSpot, message: str) -> SpotActionResponse:
    return SpotActionResponse(
        success=True,
        message=message,
        spot=SpotResponse.model_validate(spot),
        queue=QueueResponse.model_validate(spot.queue),
        haunted_house=HauntedHouseResponse.model_validate(spot.queue.haunted_house),
        reservation=ReservationResponse.model_validate(spot.reservation) if spot.reservation else None,
    )


@router.get("/my-spot", response_model=MySpotResponse)
async def my_spot(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    The signed-in customer's spot, if any, with queue, house and
    reservation details.
    """
    await reconcile_reservations(session_factory)
    return MySpotResponse(
        customer=CustomerResponse.model_validate(customer),
        spot=await get_customer_spot(db, customer.student_id),
    )


@router.post("/join-queue", response_model=SpotActionResponse)
async def join_queue(
    data: JoinQueueRequest,
    customer: Customer = Depends(get_current_customer),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Claim the first available spot of a queue."""
    _check_selection_open()
    _check_own_data(customer, data.customer_data)

    result = raise_for_result(
        await allocation.join_queue(session_factory, data.queue_id, data.customer_data)
    )
    return _spot_response(result.data, f"You are in spot #{result.data.spot_number}")


@router.post("/create-reservation", response_model=ReservationActionResponse)
async def create_reservation(
    data: CreateReservationRequest,
    customer: Customer = Depends(get_current_customer),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Hold several spots of a queue for a group.

    Share the returned code with the group; the hold expires if the group
    does not fill up in time.
    """
    _check_selection_open()
    _check_own_data(customer, data.customer_data)

    result = raise_for_result(
        await allocation.create_reservation(
            session_factory, data.queue_id, data.max_spots, data.customer_data,
        )
    )
    reservation = result.data
    return ReservationActionResponse(
        success=True,
        message=f"Reservation created. Share code {reservation.code} with your group.",
        reservation=reservation_detail(reservation),
    )


@router.post("/join-reservation", response_model=SpotActionResponse)
async def join_reservation(
    data: JoinReservationRequest,
    customer: Customer = Depends(get_current_customer),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Join a group reservation with its code."""
    _check_selection_open()
    _check_own_data(customer, data.customer_data)

    result = raise_for_result(
        await allocation.join_reservation(session_factory, data.code, data.customer_data)
    )
    return _spot_response(result.data, "You joined the reservation")


@router.post("/leave-queue", response_model=ActionResponse)
async def leave_queue(
    customer: Customer = Depends(get_current_customer),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Give up the current spot.

    A representative leaving cancels the whole reservation.
    """
    _check_selection_open()

    result = raise_for_result(await allocation.leave_queue(session_factory, customer.student_id))
    return ActionResponse(success=True, message=result.message)
