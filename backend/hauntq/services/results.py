"""
Result and error types shared by every queue operation.

Operations never leak business rejections as exceptions. Internally they
raise an `AllocationError`; the `action` decorator at the operation
boundary turns it into a failed `ActionResult`. Store failures that
survive the retry policy become `DATABASE_ERROR`.
"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from hauntq.utils.retry import retry_database

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Stable error codes returned to API clients."""
    UNAUTHORIZED = "unauthorized"
    SESSION_VERIFICATION_FAILED = "session-verification-failed"
    DATABASE_ERROR = "database-error"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    ALREADY_IN_QUEUE = "already-in-queue"
    NO_AVAILABLE_SPOTS = "no-available-spots"
    MAX_RESERVATION_ATTEMPTS = "max-reservation-attempts"
    INVALID_RESERVATION_CODE = "invalid-reservation-code"
    RESERVATION_EXPIRED = "reservation-expired"
    RESERVATION_FULL = "reservation-full"
    CANNOT_JOIN = "cannot-join-reservation"
    NOT_IN_QUEUE = "not-in-queue"
    CANNOT_CANCEL = "cannot-cancel-reservation"
    SELECTION_DEADLINE_EXPIRED = "selection-deadline-expired"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHORIZED: "You do not have access to this resource",
    ErrorCode.SESSION_VERIFICATION_FAILED: "Could not verify your session. Please sign in again.",
    ErrorCode.DATABASE_ERROR: "Database error. Please try again later.",
    ErrorCode.INVALID_INPUT: "Invalid input",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.ALREADY_EXISTS: "Resource already exists",
    ErrorCode.ALREADY_IN_QUEUE: "You already have a spot",
    ErrorCode.NO_AVAILABLE_SPOTS: "No spots left in this queue",
    ErrorCode.MAX_RESERVATION_ATTEMPTS: "Reservation limit reached (2 attempts allowed)",
    ErrorCode.INVALID_RESERVATION_CODE: "Invalid reservation code",
    ErrorCode.RESERVATION_EXPIRED: "This reservation has expired",
    ErrorCode.RESERVATION_FULL: "This reservation is full",
    ErrorCode.CANNOT_JOIN: "This reservation cannot be joined",
    ErrorCode.NOT_IN_QUEUE: "You are not in any queue",
    ErrorCode.CANNOT_CANCEL: "This reservation cannot be cancelled",
    ErrorCode.SELECTION_DEADLINE_EXPIRED: "The selection deadline has passed",
}


class AllocationError(Exception):
    """Business rule rejection raised inside an operation."""

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)


class NotFound(AllocationError):
    code = ErrorCode.NOT_FOUND


class AlreadyExists(AllocationError):
    code = ErrorCode.ALREADY_EXISTS


class InvalidInput(AllocationError):
    code = ErrorCode.INVALID_INPUT


class AlreadyInQueue(AllocationError):
    code = ErrorCode.ALREADY_IN_QUEUE


class NoAvailableSpots(AllocationError):
    code = ErrorCode.NO_AVAILABLE_SPOTS


class MaxReservationAttempts(AllocationError):
    code = ErrorCode.MAX_RESERVATION_ATTEMPTS


class InvalidReservationCode(AllocationError):
    code = ErrorCode.INVALID_RESERVATION_CODE


class ReservationExpired(AllocationError):
    code = ErrorCode.RESERVATION_EXPIRED


class ReservationFull(AllocationError):
    code = ErrorCode.RESERVATION_FULL


class CannotJoin(AllocationError):
    code = ErrorCode.CANNOT_JOIN


class NotInQueue(AllocationError):
    code = ErrorCode.NOT_IN_QUEUE


class CannotCancel(AllocationError):
    code = ErrorCode.CANNOT_CANCEL


@dataclass
class ActionResult:
    """Tagged success/failure result of an operation."""
    success: bool
    message: str = ""
    code: Optional[ErrorCode] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "") -> "ActionResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, code: ErrorCode, message: Optional[str] = None) -> "ActionResult":
        return cls(success=False, code=code, message=message or ERROR_MESSAGES[code])


def action(failure_message: str):
    """
    Mark a coroutine as an operation boundary.

    The wrapped coroutine is retried as a whole on transient store
    failures and its outcome is always an `ActionResult`.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> ActionResult:
            try:
                result = await retry_database(
                    lambda: func(*args, **kwargs),
                    func.__name__,
                )
            except AllocationError as exc:
                logger.info("%s rejected: %s (%s)", func.__name__, exc.message, exc.code.value)
                return ActionResult.fail(exc.code, exc.message)
            except SQLAlchemyError:
                logger.exception("%s failed with a database error", func.__name__)
                return ActionResult.fail(ErrorCode.DATABASE_ERROR, failure_message)

            if isinstance(result, ActionResult):
                return result
            return ActionResult.ok(result)

        return wrapper

    return decorator
