"""
Bounded retry for store calls.

Only transient infrastructure failures (lost connections, lock timeouts)
are retried. Anything else, business rejections included, propagates on
the first attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from hauntq.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Check whether a store error is worth another attempt."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def retry_database(
    operation: Callable[[], Awaitable[T]],
    description: str,
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
) -> T:
    """
    Run `operation` with exponential backoff on transient store failures.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        description: Human readable label for log lines
        attempts: Maximum number of attempts (default from settings)
        base_delay: Delay before the second attempt in seconds, doubled after

    Returns:
        Whatever `operation` returns
    """
    settings = get_settings()
    attempts = attempts or settings.db_retry_attempts
    delay = settings.db_retry_base_delay if base_delay is None else base_delay

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_transient(exc) or attempt == attempts:
                raise
            logger.warning(
                "Transient database error during %s (attempt %d/%d): %s",
                description, attempt, attempts, exc,
            )
            await asyncio.sleep(delay)
            delay *= 2

    raise RuntimeError("unreachable")  # pragma: no cover
