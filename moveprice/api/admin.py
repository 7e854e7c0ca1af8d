"""Operational endpoints for managers"""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from moveprice.db.session import get_db
from moveprice.schemas.event import StatusEventOut, SweepOut
from moveprice.core.security import Actor, require_manager
from moveprice.core.enums import AuditAction
from moveprice.core.audit_decorator import audit_log
from moveprice.core.response_builders import build_event_response, build_event_response_list
from moveprice.services.events import list_events, redeliver_event
from moveprice.services.negotiation import sweep_expired
from moveprice.utils.clock import utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/sweep", response_model=SweepOut)
@audit_log(AuditAction.SWEEP_EXPIRED)
async def run_sweep(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    result = await sweep_expired(db, now=utcnow())
    logger.info(f"Manual expiry sweep by actor {actor.id}")
    return SweepOut(
        counter_offers_expired=result.counter_offers_expired,
        quotations_expired=result.quotations_expired,
        skipped=result.skipped,
    )


@router.get("/events", response_model=List[StatusEventOut])
async def get_events(
    delivered: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    events = await list_events(db, delivered=delivered, limit=limit, offset=offset)
    return build_event_response_list(events)


@router.post("/events/{event_id}/retry", response_model=StatusEventOut)
@audit_log(AuditAction.RETRY_EVENT)
async def retry_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_manager),
):
    event = await redeliver_event(db, event_id)
    return build_event_response(event)
