"""
Translation of failed action results into HTTP errors.
"""

from fastapi import HTTPException, status

from hauntq.services.results import ActionResult, ErrorCode

HTTP_STATUS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.SESSION_VERIFICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_IN_QUEUE: status.HTTP_409_CONFLICT,
    ErrorCode.NO_AVAILABLE_SPOTS: status.HTTP_409_CONFLICT,
    ErrorCode.MAX_RESERVATION_ATTEMPTS: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_RESERVATION_CODE: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESERVATION_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorCode.RESERVATION_FULL: status.HTTP_409_CONFLICT,
    ErrorCode.CANNOT_JOIN: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_IN_QUEUE: status.HTTP_404_NOT_FOUND,
    ErrorCode.CANNOT_CANCEL: status.HTTP_409_CONFLICT,
    ErrorCode.SELECTION_DEADLINE_EXPIRED: status.HTTP_403_FORBIDDEN,
}


def raise_for_result(result: ActionResult) -> ActionResult:
    """Return a successful result, raise HTTPException for a failed one."""
    if result.success:
        return result
    raise HTTPException(
        status_code=HTTP_STATUS_BY_CODE.get(result.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": result.code.value, "message": result.message},
    )


def raise_error(code: ErrorCode, message: str) -> None:
    raise_for_result(ActionResult.fail(code, message))
