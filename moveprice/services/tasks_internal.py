import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from moveprice.core.config import settings
from moveprice.core.audit_log import log_audit
from moveprice.core.enums import AuditAction
from moveprice.db.session import build_engine
from moveprice.services.events import Sender, dispatch_pending_events
from moveprice.services.negotiation import sweep_expired

logger = logging.getLogger(__name__)

engine_worker = build_engine(settings.DATABASE_URL)
AsyncSessionWorker = async_sessionmaker(engine_worker, class_=AsyncSession, expire_on_commit=False)


async def sweep_expired_async(now: Optional[datetime] = None, session_factory=None) -> dict:
    """Background task: expire overdue counter-offers and quotations."""
    try:
        async with (session_factory or AsyncSessionWorker)() as db:
            result = await sweep_expired(db, now=now)
            summary = {
                "counter_offers_expired": result.counter_offers_expired,
                "quotations_expired": result.quotations_expired,
                "skipped": result.skipped,
            }
            await log_audit(db, None, AuditAction.SWEEP_EXPIRED, summary)
    finally:
        if session_factory is None:
            # Each task runs in a fresh event loop; pooled connections cannot outlive it.
            await engine_worker.dispose()
    return summary


async def dispatch_status_events_async(sender: Optional[Sender] = None, session_factory=None) -> dict:
    """Background task: push undelivered status events to the webhook."""
    try:
        async with (session_factory or AsyncSessionWorker)() as db:
            summary = await dispatch_pending_events(db, limit=settings.EVENT_BATCH_SIZE, sender=sender)
    finally:
        if session_factory is None:
            await engine_worker.dispose()
    if summary["failed"]:
        logger.error(f"{summary['failed']} status events failed delivery, {summary['pending']} still pending")
    return summary
