"""Status-change outbox.

Events are added to the session of the transaction that performs the terminal
transition, so they commit or roll back together with it. Delivery is
at-least-once; listeners deduplicate on ``event_id``.
"""
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from moveprice.core.enums import EventType
from moveprice.core.exceptions import NotFound
from moveprice.core.metrics import pending_status_events
from moveprice.models.counter_offer import CounterOffer
from moveprice.models.quotation import Quotation
from moveprice.models.status_event import StatusEvent
from moveprice.services.webhook import send_webhook
from moveprice.utils.clock import utcnow

logger = logging.getLogger(__name__)

Sender = Callable[[dict], Awaitable[bool]]


def record_quotation_event(
    db: AsyncSession,
    quotation: Quotation,
    final_price: Optional[int] = None,
) -> StatusEvent:
    payload = {
        "type": str(EventType.BID_STATUS_CHANGED),
        "quotation_id": quotation.id,
        "booking_id": quotation.booking_id,
        "transport_id": quotation.transport_id,
        "status": str(quotation.status),
    }
    if final_price is not None:
        payload["final_price"] = final_price
    event = StatusEvent(
        event_type=EventType.BID_STATUS_CHANGED,
        quotation_id=quotation.id,
        booking_id=quotation.booking_id,
        status=str(quotation.status),
        final_price=final_price,
        payload=payload,
        attempts=0,
    )
    db.add(event)
    return event


def record_counter_offer_event(
    db: AsyncSession,
    counter_offer: CounterOffer,
    quotation: Quotation,
) -> StatusEvent:
    payload = {
        "type": str(EventType.COUNTER_OFFER_STATUS_CHANGED),
        "counter_offer_id": counter_offer.id,
        "quotation_id": quotation.id,
        "booking_id": quotation.booking_id,
        "status": str(counter_offer.status),
        "offered_price": counter_offer.offered_price,
    }
    event = StatusEvent(
        event_type=EventType.COUNTER_OFFER_STATUS_CHANGED,
        quotation_id=quotation.id,
        booking_id=quotation.booking_id,
        counter_offer_id=counter_offer.id,
        status=str(counter_offer.status),
        payload=payload,
        attempts=0,
    )
    db.add(event)
    return event


def build_event_message(event: StatusEvent) -> dict:
    return {"event_id": event.id, **event.payload}


async def list_events(
    db: AsyncSession,
    delivered: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[StatusEvent]:
    q = select(StatusEvent)
    if delivered is True:
        q = q.where(StatusEvent.delivered_at.is_not(None))
    elif delivered is False:
        q = q.where(StatusEvent.delivered_at.is_(None))
    q = q.order_by(StatusEvent.id.asc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return list(res.scalars().all())


async def _deliver(db: AsyncSession, event: StatusEvent, sender: Sender, now: datetime) -> bool:
    event.attempts = (event.attempts or 0) + 1
    ok = await sender(build_event_message(event))
    if ok:
        event.delivered_at = now
        event.last_error = None
    else:
        event.last_error = "webhook delivery failed"
    db.add(event)
    await db.commit()
    return ok


async def dispatch_pending_events(
    db: AsyncSession,
    limit: int = 100,
    sender: Optional[Sender] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Deliver undelivered events oldest first; failed ones stay queued for the next run."""
    sender = sender or send_webhook
    now = now or utcnow()
    events = await list_events(db, delivered=False, limit=limit)

    delivered = failed = 0
    for event in events:
        if await _deliver(db, event, sender, now):
            delivered += 1
        else:
            failed += 1

    res = await db.execute(
        select(func.count()).select_from(StatusEvent).where(StatusEvent.delivered_at.is_(None))
    )
    remaining = res.scalar_one()
    pending_status_events.set(remaining)

    if events:
        logger.info(f"Dispatched status events: {delivered} delivered, {failed} failed, {remaining} pending")
    return {"delivered": delivered, "failed": failed, "pending": remaining}


async def redeliver_event(
    db: AsyncSession,
    event_id: int,
    sender: Optional[Sender] = None,
    now: Optional[datetime] = None,
) -> StatusEvent:
    """Send one event again, delivered or not."""
    res = await db.execute(select(StatusEvent).where(StatusEvent.id == event_id))
    event = res.scalars().first()
    if event is None:
        raise NotFound("Status event", event_id)
    await _deliver(db, event, sender or send_webhook, now or utcnow())
    return event
