from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import get_settings
from app.core.db import AsyncSessionFactory
from app.services.invitation_store import InvitationStore

logger = logging.getLogger(__name__)
settings = get_settings()

maintenance_scheduler = AsyncIOScheduler()


async def sweep_expired_invitations() -> int:
    """Persist the expired status of pending invitations whose expiry passed."""
    async with AsyncSessionFactory() as session:
        try:
            count = await InvitationStore(session).sweep_expired()
        except Exception as exc:
            logger.exception("Invitation sweep failed", extra={"error": str(exc)})
            return 0
    logger.info("invitation_sweep", extra={"expired": count})
    return count


def start_scheduler() -> None:
    if maintenance_scheduler.running:
        return
    maintenance_scheduler.add_job(
        sweep_expired_invitations,
        "interval",
        minutes=settings.invitation_sweep_interval_minutes,
        id="invitation-expiry-sweep",
        max_instances=1,
        coalesce=True,
    )
    maintenance_scheduler.start()
    logger.info(
        "Maintenance scheduler started",
        extra={"interval_minutes": settings.invitation_sweep_interval_minutes},
    )


def shutdown_scheduler() -> None:
    if maintenance_scheduler.running:
        maintenance_scheduler.shutdown(wait=False)
        logger.info("Maintenance scheduler stopped")
