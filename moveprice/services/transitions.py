"""Status transitions shared by the ledger, the negotiation engine and binding.

Every row carries a ``version`` column; a flush that updates a row someone
else changed since it was loaded fails with ``StaleDataError``, which is
reported as the conflict the caller lost.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError

from moveprice.core.enums import CounterOfferStatus, QuotationStatus
from moveprice.core.exceptions import (
    AlreadyResolved, ConflictError, Expired, NegotiationError, NotFound,
)
from moveprice.core.metrics import negotiation_conflicts
from moveprice.models.booking import Booking
from moveprice.models.counter_offer import CounterOffer
from moveprice.models.quotation import Quotation
from moveprice.services.events import record_counter_offer_event, record_quotation_event
from moveprice.utils.clock import is_past

logger = logging.getLogger(__name__)


@asynccontextmanager
async def negotiation_transaction(db: AsyncSession):
    """Commit on success; roll back and re-raise typed failures."""
    try:
        yield
        await db.commit()
    except NegotiationError as e:
        await db.rollback()
        if isinstance(e, ConflictError):
            negotiation_conflicts.labels(error=e.code).inc()
        raise
    except Exception:
        await db.rollback()
        raise


async def flush_or_raise(db: AsyncSession, error: NegotiationError) -> None:
    """Flush pending writes, reporting a lost race as ``error``.

    ``error`` is built before the flush: a failed flush expires every loaded
    row, so nothing may be read from the session afterwards.
    """
    try:
        await db.flush()
    except (StaleDataError, IntegrityError) as e:
        logger.warning(f"Concurrent update detected: {e}")
        raise error from e


async def load_booking(db: AsyncSession, booking_id: int) -> Booking:
    res = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = res.scalars().first()
    if booking is None:
        raise NotFound("Booking", booking_id)
    return booking


async def load_quotation(db: AsyncSession, quotation_id: int) -> Quotation:
    res = await db.execute(
        select(Quotation).where(Quotation.id == quotation_id).execution_options(populate_existing=True)
    )
    quotation = res.scalars().first()
    if quotation is None:
        raise NotFound("Quotation", quotation_id)
    return quotation


async def load_counter_offer(db: AsyncSession, counter_offer_id: int) -> CounterOffer:
    res = await db.execute(
        select(CounterOffer)
        .where(CounterOffer.id == counter_offer_id)
        .execution_options(populate_existing=True)
    )
    counter_offer = res.scalars().first()
    if counter_offer is None:
        raise NotFound("Counter-offer", counter_offer_id)
    return counter_offer


async def get_pending_counter_offer(db: AsyncSession, quotation_id: int) -> Optional[CounterOffer]:
    res = await db.execute(
        select(CounterOffer)
        .where(
            CounterOffer.quotation_id == quotation_id,
            CounterOffer.status == CounterOfferStatus.PENDING,
        )
        .execution_options(populate_existing=True)
    )
    return res.scalars().first()


async def close_counter_offer(
    db: AsyncSession,
    counter_offer: CounterOffer,
    quotation: Quotation,
    target: CounterOfferStatus,
    now: datetime,
) -> CounterOffer:
    current = CounterOfferStatus(counter_offer.status)
    if not current.can_transition_to(target):
        raise AlreadyResolved(
            f"Counter-offer {counter_offer.id} is already {current}",
            counter_offer_id=counter_offer.id,
            status=str(current),
        )
    lost_race = AlreadyResolved(
        f"Counter-offer {counter_offer.id} was resolved concurrently",
        counter_offer_id=counter_offer.id,
    )
    counter_offer.status = target
    counter_offer.responded_at = now
    await flush_or_raise(db, lost_race)
    record_counter_offer_event(db, counter_offer, quotation)
    logger.info(f"Counter-offer {counter_offer.id} on quotation {quotation.id}: {current} -> {target}")
    return counter_offer


def _cascade_target(quotation_target: QuotationStatus, counter_offer: CounterOffer, now: datetime) -> CounterOfferStatus:
    if quotation_target == QuotationStatus.EXPIRED or is_past(counter_offer.expires_at, now):
        return CounterOfferStatus.EXPIRED
    return CounterOfferStatus.REJECTED


async def close_quotation(
    db: AsyncSession,
    quotation: Quotation,
    target: QuotationStatus,
    now: datetime,
    final_price: Optional[int] = None,
    reason: Optional[str] = None,
) -> list[CounterOffer]:
    """Move a quotation to a terminal status and close its open counter-offer.

    Returns the counter-offers closed by the cascade.
    """
    current = QuotationStatus(quotation.status)
    if not current.can_transition_to(target):
        raise AlreadyResolved(
            f"Quotation {quotation.id} is already {current}",
            quotation_id=quotation.id,
            status=str(current),
        )
    lost_race = AlreadyResolved(
        f"Quotation {quotation.id} was resolved concurrently",
        quotation_id=quotation.id,
    )
    quotation.status = target
    quotation.responded_at = now
    if reason is not None:
        quotation.rejection_reason = reason
    await flush_or_raise(db, lost_race)
    record_quotation_event(db, quotation, final_price=final_price)
    logger.info(f"Quotation {quotation.id} on booking {quotation.booking_id}: {current} -> {target}")

    closed = []
    pending = await get_pending_counter_offer(db, quotation.id)
    if pending is not None:
        closed.append(await close_counter_offer(db, pending, quotation, _cascade_target(target, pending, now), now))
    return closed


async def expire_and_raise(db: AsyncSession, record, quotation: Quotation, now: datetime) -> None:
    """Persist the lazily discovered expiration, then report it."""
    if isinstance(record, CounterOffer):
        await close_counter_offer(db, record, quotation, CounterOfferStatus.EXPIRED, now)
        message = f"Counter-offer {record.id} expired at {record.expires_at}"
        context = {"counter_offer_id": record.id}
    else:
        await close_quotation(db, quotation, QuotationStatus.EXPIRED, now)
        message = f"Quotation {quotation.id} expired at {quotation.expires_at}"
        context = {"quotation_id": quotation.id}
    await db.commit()
    raise Expired(message, **context)
