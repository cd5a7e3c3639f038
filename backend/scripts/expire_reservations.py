"""
Run one reconciliation sweep: expire stale reservations and complete
filled ones.

Run with: python -m scripts.expire_reservations

Meant for a system crontab when the HTTP cron endpoint is not reachable.
"""

import asyncio
import logging

from hauntq.config import get_settings
from hauntq.database import engine, get_session_factory
from hauntq.services.reconciler import reconcile_reservations


async def main():
    """Main entry point."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        count = await reconcile_reservations(get_session_factory())
        print(f"Settled {count} reservation(s)")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
