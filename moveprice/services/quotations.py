"""Quotation ledger: transport companies' priced offers against a booking."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from moveprice.core.config import settings
from moveprice.core.enums import QuotationStatus
from moveprice.core.exceptions import (
    AlreadyBound, AlreadyResolved, ConflictError, DuplicateActiveQuotation,
)
from moveprice.core.metrics import bookings_bound, quotation_transitions, quotations_submitted
from moveprice.core.security import Actor
from moveprice.models.booking import Booking
from moveprice.models.quotation import Quotation
from moveprice.schemas.pricing import PriceBreakdown, RateSnapshot
from moveprice.services.binding import BindingResult, bind_price
from moveprice.services.transitions import (
    close_quotation,
    expire_and_raise,
    flush_or_raise,
    load_booking,
    load_quotation,
    negotiation_transaction,
)
from moveprice.utils.clock import is_past, utcnow

logger = logging.getLogger(__name__)


def _count_binding(result: BindingResult, source: str) -> None:
    bookings_bound.labels(source=source).inc()
    quotation_transitions.labels(status=str(QuotationStatus.ACCEPTED)).inc()
    if result.rejected_quotation_ids:
        quotation_transitions.labels(status=str(QuotationStatus.REJECTED)).inc(len(result.rejected_quotation_ids))
    if result.expired_quotation_ids:
        quotation_transitions.labels(status=str(QuotationStatus.EXPIRED)).inc(len(result.expired_quotation_ids))


async def submit_quotation(
    db: AsyncSession,
    booking_id: int,
    transport_id: int,
    breakdown: PriceBreakdown,
    actor: Actor,
    rates: Optional[RateSnapshot] = None,
    notes: Optional[str] = None,
    validity_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Quotation:
    now = now or utcnow()
    if validity_hours is None:
        validity_hours = settings.QUOTATION_VALIDITY_HOURS

    async with negotiation_transaction(db):
        booking = await load_booking(db, booking_id)
        if booking.is_bound:
            raise AlreadyBound(f"Booking {booking_id} already has a bound price", booking_id=booking_id)

        await _expire_overdue(db, booking_id, now, transport_id=transport_id)
        res = await db.execute(
            select(Quotation.id).where(
                Quotation.booking_id == booking_id,
                Quotation.transport_id == transport_id,
                Quotation.status == QuotationStatus.PENDING,
            )
        )
        existing = res.scalars().first()
        if existing is not None:
            raise DuplicateActiveQuotation(
                f"Transport {transport_id} already has pending quotation {existing} on booking {booking_id}",
                quotation_id=existing,
            )

        stored_breakdown = breakdown.model_dump(mode="json")
        if rates is not None:
            # Kept so later rate card edits cannot change what was offered.
            stored_breakdown["rates"] = rates.model_dump(mode="json")

        quotation = Quotation(
            booking_id=booking_id,
            transport_id=transport_id,
            base_price=breakdown.base_price,
            distance_price=breakdown.distance_price,
            items_price=breakdown.items_price,
            floor_fees=breakdown.floor_fees,
            time_multiplier=breakdown.time_multiplier,
            subtotal=breakdown.subtotal,
            total_price=breakdown.total,
            current_price=breakdown.total,
            price_breakdown=stored_breakdown,
            notes=notes,
            status=QuotationStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(hours=validity_hours) if validity_hours > 0 else None,
        )
        await _claim_unbound_booking(db, booking_id)
        db.add(quotation)
        await flush_or_raise(db, DuplicateActiveQuotation(
            f"Transport {transport_id} already has a pending quotation on booking {booking_id}"
        ))

    quotations_submitted.inc()
    logger.info(
        f"Quotation {quotation.id} submitted by transport {transport_id} "
        f"on booking {booking_id} at {quotation.total_price} (actor {actor.id})"
    )
    return quotation


async def _claim_unbound_booking(db: AsyncSession, booking_id: int) -> None:
    """Write the booking row unless it is bound.

    The row lock taken here orders the new offer against any binding: a bind
    that commits first leaves nothing to update, one that runs later sees the
    new quotation among the competitors it closes.
    """
    res = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.bound_at.is_(None))
        .values(quotation_count=Booking.quotation_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise AlreadyBound(f"Booking {booking_id} already has a bound price", booking_id=booking_id)


async def _expire_overdue(
    db: AsyncSession,
    booking_id: int,
    now: datetime,
    transport_id: Optional[int] = None,
) -> list[int]:
    """Expire PENDING quotations of a booking whose deadline passed. Caller commits."""
    q = select(Quotation).where(
        Quotation.booking_id == booking_id,
        Quotation.status == QuotationStatus.PENDING,
        Quotation.expires_at.is_not(None),
    )
    if transport_id is not None:
        q = q.where(Quotation.transport_id == transport_id)
    res = await db.execute(q.execution_options(populate_existing=True))
    expired = []
    for quotation in res.scalars().all():
        if is_past(quotation.expires_at, now):
            await close_quotation(db, quotation, QuotationStatus.EXPIRED, now)
            expired.append(quotation.id)
    return expired


async def _refresh_booking_expirations(db: AsyncSession, booking_id: int, now: datetime) -> None:
    try:
        async with negotiation_transaction(db):
            expired = await _expire_overdue(db, booking_id, now)
    except ConflictError:
        # Someone else resolved one of them first; the re-read below shows the outcome.
        return
    if expired:
        quotation_transitions.labels(status=str(QuotationStatus.EXPIRED)).inc(len(expired))


async def list_active(db: AsyncSession, booking_id: int, now: Optional[datetime] = None) -> list[Quotation]:
    now = now or utcnow()
    await _refresh_booking_expirations(db, booking_id, now)
    res = await db.execute(
        select(Quotation)
        .where(Quotation.booking_id == booking_id, Quotation.status == QuotationStatus.PENDING)
        .order_by(Quotation.current_price.asc(), Quotation.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def list_for_booking(db: AsyncSession, booking_id: int, now: Optional[datetime] = None) -> list[Quotation]:
    now = now or utcnow()
    await _refresh_booking_expirations(db, booking_id, now)
    res = await db.execute(
        select(Quotation)
        .where(Quotation.booking_id == booking_id)
        .order_by(Quotation.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def get_quotation(db: AsyncSession, quotation_id: int, now: Optional[datetime] = None) -> Quotation:
    """Fetch a quotation, expiring it first if its deadline has passed."""
    now = now or utcnow()
    quotation = await load_quotation(db, quotation_id)
    if quotation.status == QuotationStatus.PENDING and is_past(quotation.expires_at, now):
        try:
            async with negotiation_transaction(db):
                await close_quotation(db, quotation, QuotationStatus.EXPIRED, now)
            quotation_transitions.labels(status=str(QuotationStatus.EXPIRED)).inc()
        except ConflictError:
            pass
        quotation = await load_quotation(db, quotation_id)
    return quotation


async def expire_quotation(db: AsyncSession, quotation_id: int, now: Optional[datetime] = None) -> Quotation:
    """PENDING -> EXPIRED. No-op on a quotation that is already terminal."""
    now = now or utcnow()
    async with negotiation_transaction(db):
        quotation = await load_quotation(db, quotation_id)
        if quotation.status != QuotationStatus.PENDING:
            return quotation
        await close_quotation(db, quotation, QuotationStatus.EXPIRED, now)
    quotation_transitions.labels(status=str(QuotationStatus.EXPIRED)).inc()
    return quotation


async def reject_quotation(
    db: AsyncSession,
    quotation_id: int,
    actor: Actor,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Quotation:
    now = now or utcnow()
    async with negotiation_transaction(db):
        quotation = await load_quotation(db, quotation_id)
        if quotation.status != QuotationStatus.PENDING:
            raise AlreadyResolved(
                f"Quotation {quotation_id} is already {quotation.status}",
                quotation_id=quotation_id,
            )
        if is_past(quotation.expires_at, now):
            await expire_and_raise(db, quotation, quotation, now)
        await close_quotation(db, quotation, QuotationStatus.REJECTED, now, reason=reason)
    quotation_transitions.labels(status=str(QuotationStatus.REJECTED)).inc()
    logger.info(f"Quotation {quotation_id} rejected by actor {actor.id}")
    return quotation


async def accept_quotation(
    db: AsyncSession,
    quotation_id: int,
    actor: Actor,
    now: Optional[datetime] = None,
) -> BindingResult:
    """Accept a quotation at its current price and bind it to the booking."""
    now = now or utcnow()
    async with negotiation_transaction(db):
        quotation = await load_quotation(db, quotation_id)
        booking = await load_booking(db, quotation.booking_id)
        if booking.is_bound:
            raise AlreadyBound(
                f"Booking {booking.id} is already bound to quotation {booking.bound_quotation_id}",
                booking_id=booking.id,
            )
        if quotation.status != QuotationStatus.PENDING:
            raise AlreadyResolved(
                f"Quotation {quotation_id} is already {quotation.status}",
                quotation_id=quotation_id,
            )
        if is_past(quotation.expires_at, now):
            await expire_and_raise(db, quotation, quotation, now)

        result = await bind_price(
            db, booking, quotation.transport_id, quotation.current_price, quotation, actor, now,
        )

    _count_binding(result, "quotation")
    return result
