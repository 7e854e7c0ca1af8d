"""Counter-offer negotiation on top of a pending quotation.

A quotation carries at most one PENDING counter-offer. A new proposal
supersedes the open one in the same transaction, and accepting a
counter-offer binds the booking at the offered price. Deadlines are checked
whenever a record is touched, the sweep only keeps listings fresh.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from moveprice.core.config import settings
from moveprice.core.enums import CounterOfferDecision, CounterOfferStatus, QuotationStatus
from moveprice.core.exceptions import (
    AlreadyResolved, ConflictError, InvalidCounterPrice, ValidationFailed,
)
from moveprice.core.metrics import counter_offer_transitions, expirations_swept
from moveprice.core.security import Actor
from moveprice.models.counter_offer import CounterOffer
from moveprice.models.quotation import Quotation
from moveprice.services.binding import BindingResult, bind_price
from moveprice.services.quotations import _count_binding
from moveprice.services.transitions import (
    close_counter_offer,
    close_quotation,
    expire_and_raise,
    flush_or_raise,
    get_pending_counter_offer,
    load_booking,
    load_counter_offer,
    load_quotation,
    negotiation_transaction,
)
from moveprice.utils.clock import as_utc, is_past, utcnow

logger = logging.getLogger(__name__)


@dataclass
class NegotiationOutcome:
    counter_offer: CounterOffer
    quotation: Quotation
    binding: Optional[BindingResult] = None


@dataclass
class SweepResult:
    counter_offers_expired: int = 0
    quotations_expired: int = 0
    skipped: int = 0


def price_difference(counter_offer: CounterOffer) -> int:
    return counter_offer.original_price - counter_offer.offered_price


def percentage_change(counter_offer: CounterOffer) -> float:
    if not counter_offer.original_price:
        return 0.0
    return round(price_difference(counter_offer) / counter_offer.original_price * 100, 1)


def hours_until_expiration(counter_offer: CounterOffer, now: datetime) -> float:
    remaining = as_utc(counter_offer.expires_at) - as_utc(now)
    return max(0.0, round(remaining.total_seconds() / 3600, 2))


def can_respond(counter_offer: CounterOffer, now: datetime) -> bool:
    return counter_offer.status == CounterOfferStatus.PENDING and not is_past(counter_offer.expires_at, now)


def _validate_expiration_hours(hours: int) -> None:
    if hours <= 0 or hours > settings.MAX_COUNTER_OFFER_EXPIRATION_HOURS:
        raise ValidationFailed(
            f"expiration_hours must be between 1 and {settings.MAX_COUNTER_OFFER_EXPIRATION_HOURS}"
        )


async def propose_counter_offer(
    db: AsyncSession,
    quotation_id: int,
    offered_price: int,
    actor: Actor,
    reason: Optional[str] = None,
    message: Optional[str] = None,
    expiration_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CounterOffer:
    now = now or utcnow()
    if expiration_hours is None:
        expiration_hours = settings.COUNTER_OFFER_EXPIRATION_HOURS
    if offered_price <= 0:
        raise InvalidCounterPrice("Offered price must be greater than zero", offered_price=offered_price)
    _validate_expiration_hours(expiration_hours)

    superseded = None
    async with negotiation_transaction(db):
        quotation = await load_quotation(db, quotation_id)
        if quotation.status != QuotationStatus.PENDING:
            raise AlreadyResolved(
                f"Quotation {quotation_id} is already {quotation.status}",
                quotation_id=quotation_id,
            )
        if is_past(quotation.expires_at, now):
            await expire_and_raise(db, quotation, quotation, now)
        if offered_price >= quotation.current_price:
            raise InvalidCounterPrice(
                f"Offered price {offered_price} must be lower than the current price {quotation.current_price}",
                offered_price=offered_price,
                current_price=quotation.current_price,
            )

        previous = await get_pending_counter_offer(db, quotation.id)
        if previous is not None:
            target = (
                CounterOfferStatus.EXPIRED if is_past(previous.expires_at, now)
                else CounterOfferStatus.SUPERSEDED
            )
            superseded = await close_counter_offer(db, previous, quotation, target, now)

        # Writing the quotation row bumps its version, serializing concurrent proposals.
        quotation.counter_offer_count = (quotation.counter_offer_count or 0) + 1
        await flush_or_raise(db, AlreadyResolved(
            f"Quotation {quotation_id} changed concurrently",
            quotation_id=quotation_id,
        ))

        counter_offer = CounterOffer(
            quotation_id=quotation.id,
            original_price=quotation.current_price,
            offered_price=offered_price,
            reason=reason,
            message=message,
            status=CounterOfferStatus.PENDING,
            offered_by=actor.id,
            created_at=now,
            expires_at=now + timedelta(hours=expiration_hours),
        )
        db.add(counter_offer)
        await flush_or_raise(db, AlreadyResolved(
            f"Another counter-offer was proposed on quotation {quotation_id} concurrently",
            quotation_id=quotation_id,
        ))

    counter_offer_transitions.labels(status=str(CounterOfferStatus.PENDING)).inc()
    if superseded is not None:
        counter_offer_transitions.labels(status=str(superseded.status)).inc()
    logger.info(
        f"Counter-offer {counter_offer.id} proposed on quotation {quotation_id}: "
        f"{counter_offer.original_price} -> {offered_price} by actor {actor.id}"
    )
    return counter_offer


async def respond_counter_offer(
    db: AsyncSession,
    counter_offer_id: int,
    decision: CounterOfferDecision,
    actor: Actor,
    response_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> NegotiationOutcome:
    now = now or utcnow()
    decision = CounterOfferDecision(decision)
    binding = None

    async with negotiation_transaction(db):
        counter_offer = await load_counter_offer(db, counter_offer_id)
        if counter_offer.status != CounterOfferStatus.PENDING:
            raise AlreadyResolved(
                f"Counter-offer {counter_offer_id} is already {counter_offer.status}",
                counter_offer_id=counter_offer_id,
            )
        quotation = await load_quotation(db, counter_offer.quotation_id)
        if is_past(counter_offer.expires_at, now):
            await expire_and_raise(db, counter_offer, quotation, now)

        if decision == CounterOfferDecision.REJECT:
            counter_offer.responded_by = actor.id
            counter_offer.response_message = response_message
            await close_counter_offer(db, counter_offer, quotation, CounterOfferStatus.REJECTED, now)
        else:
            if quotation.status != QuotationStatus.PENDING:
                raise AlreadyResolved(
                    f"Quotation {quotation.id} is already {quotation.status}",
                    quotation_id=quotation.id,
                )
            if is_past(quotation.expires_at, now):
                await expire_and_raise(db, quotation, quotation, now)

            counter_offer.responded_by = actor.id
            counter_offer.response_message = response_message
            await close_counter_offer(db, counter_offer, quotation, CounterOfferStatus.ACCEPTED, now)
            booking = await load_booking(db, quotation.booking_id)
            binding = await bind_price(
                db,
                booking,
                quotation.transport_id,
                counter_offer.offered_price,
                quotation,
                actor,
                now,
                counter_offer=counter_offer,
            )

    counter_offer_transitions.labels(status=str(counter_offer.status)).inc()
    if binding is not None:
        _count_binding(binding, "counter_offer")
    logger.info(f"Counter-offer {counter_offer_id} {decision} by actor {actor.id}")
    return NegotiationOutcome(counter_offer=counter_offer, quotation=quotation, binding=binding)


async def _expire_counter_offer_if_due(db: AsyncSession, counter_offer: CounterOffer, now: datetime) -> bool:
    if counter_offer.status != CounterOfferStatus.PENDING or not is_past(counter_offer.expires_at, now):
        return False
    try:
        async with negotiation_transaction(db):
            quotation = await load_quotation(db, counter_offer.quotation_id)
            await close_counter_offer(db, counter_offer, quotation, CounterOfferStatus.EXPIRED, now)
    except ConflictError:
        return False
    counter_offer_transitions.labels(status=str(CounterOfferStatus.EXPIRED)).inc()
    return True


async def get_counter_offer(db: AsyncSession, counter_offer_id: int, now: Optional[datetime] = None) -> CounterOffer:
    now = now or utcnow()
    counter_offer = await load_counter_offer(db, counter_offer_id)
    await _expire_counter_offer_if_due(db, counter_offer, now)
    # Re-read: either the expiry just written or whatever won the race.
    return await load_counter_offer(db, counter_offer_id)


async def list_counter_offers(db: AsyncSession, quotation_id: int, now: Optional[datetime] = None) -> list[CounterOffer]:
    now = now or utcnow()
    await load_quotation(db, quotation_id)
    pending = await get_pending_counter_offer(db, quotation_id)
    if pending is not None:
        await _expire_counter_offer_if_due(db, pending, now)
    res = await db.execute(
        select(CounterOffer)
        .where(CounterOffer.quotation_id == quotation_id)
        .order_by(CounterOffer.created_at.desc(), CounterOffer.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def sweep_expired(db: AsyncSession, now: Optional[datetime] = None) -> SweepResult:
    """Expire every PENDING counter-offer and quotation whose deadline is before ``now``.

    Each record is expired in its own transaction. A record resolved by a
    concurrent operation in the meantime is skipped.
    """
    now = as_utc(now or utcnow())
    result = SweepResult()

    res = await db.execute(
        select(CounterOffer.id).where(
            CounterOffer.status == CounterOfferStatus.PENDING,
            CounterOffer.expires_at < now,
        ).order_by(CounterOffer.id)
    )
    for counter_offer_id in res.scalars().all():
        try:
            async with negotiation_transaction(db):
                counter_offer = await load_counter_offer(db, counter_offer_id)
                if counter_offer.status != CounterOfferStatus.PENDING:
                    raise AlreadyResolved(f"Counter-offer {counter_offer_id} already {counter_offer.status}")
                quotation = await load_quotation(db, counter_offer.quotation_id)
                await close_counter_offer(db, counter_offer, quotation, CounterOfferStatus.EXPIRED, now)
            result.counter_offers_expired += 1
        except ConflictError:
            result.skipped += 1

    res = await db.execute(
        select(Quotation.id).where(
            Quotation.status == QuotationStatus.PENDING,
            Quotation.expires_at.is_not(None),
            Quotation.expires_at < now,
        ).order_by(Quotation.id)
    )
    for quotation_id in res.scalars().all():
        try:
            async with negotiation_transaction(db):
                quotation = await load_quotation(db, quotation_id)
                closed = await close_quotation(db, quotation, QuotationStatus.EXPIRED, now)
            result.quotations_expired += 1
            result.counter_offers_expired += len(closed)
        except ConflictError:
            result.skipped += 1

    if result.counter_offers_expired:
        expirations_swept.labels(kind="counter_offer").inc(result.counter_offers_expired)
        counter_offer_transitions.labels(status=str(CounterOfferStatus.EXPIRED)).inc(result.counter_offers_expired)
    if result.quotations_expired:
        expirations_swept.labels(kind="quotation").inc(result.quotations_expired)
    logger.info(
        f"Expiry sweep at {now.isoformat()}: {result.counter_offers_expired} counter-offers, "
        f"{result.quotations_expired} quotations expired, {result.skipped} skipped"
    )
    return result
