"""
Scheduler endpoint for the reconciliation sweep.

Meant to be hit every minute by an external cron service. When
`CRON_SECRET` is configured the request must carry
`Authorization: Bearer <CRON_SECRET>`. In production the secret is
required and the endpoint refuses to run without it.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hauntq.config import get_settings
from hauntq.database import get_session_factory
from hauntq.routers.errors import raise_error
from hauntq.services.reconciler import reconcile_reservations
from hauntq.services.results import ErrorCode

router = APIRouter()


class SweepResponse(BaseModel):
    success: bool
    message: str
    count: int


@router.get("/expire-reservations", response_model=SweepResponse, status_code=status.HTTP_200_OK)
async def expire_reservations(
    authorization: Optional[str] = Header(None),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Expire stale reservations and complete filled ones."""
    settings = get_settings()
    cron_secret = settings.cron_secret
    if not cron_secret:
        if settings.app_env == "production":
            raise_error(ErrorCode.SESSION_VERIFICATION_FAILED, "CRON_SECRET is not configured")
    elif not hmac.compare_digest((authorization or "").encode(), f"Bearer {cron_secret}".encode()):
        raise_error(ErrorCode.SESSION_VERIFICATION_FAILED, "Unauthorized")

    count = await reconcile_reservations(session_factory)
    return SweepResponse(
        success=True,
        message=f"Settled {count} reservation(s)",
        count=count,
    )
