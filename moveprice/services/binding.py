import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from moveprice.core.enums import QuotationStatus
from moveprice.core.exceptions import AlreadyBound
from moveprice.core.security import Actor
from moveprice.models.booking import Booking
from moveprice.models.counter_offer import CounterOffer
from moveprice.models.quotation import Quotation
from moveprice.services.transitions import close_quotation, flush_or_raise
from moveprice.utils.clock import is_past

logger = logging.getLogger(__name__)

COMPETING_OFFER_REASON = "Another quotation was accepted for this booking"


@dataclass
class BindingResult:
    booking_id: int
    transport_id: int
    quotation_id: int
    final_price: int
    bound_at: datetime
    counter_offer_id: Optional[int] = None
    rejected_quotation_ids: list[int] = field(default_factory=list)
    expired_quotation_ids: list[int] = field(default_factory=list)
    closed_counter_offer_ids: list[int] = field(default_factory=list)


async def bind_price(
    db: AsyncSession,
    booking: Booking,
    transport_id: int,
    final_price: int,
    quotation: Quotation,
    actor: Actor,
    now: datetime,
    counter_offer: Optional[CounterOffer] = None,
) -> BindingResult:
    """Lock the final price and transport onto the booking.

    The only writer of the booking binding columns. Runs inside the caller's
    transaction: the winning quotation becomes ACCEPTED and every other open
    quotation and counter-offer on the booking is closed. Nothing is committed
    here.
    """
    if booking.is_bound:
        raise AlreadyBound(
            f"Booking {booking.id} is already bound to quotation {booking.bound_quotation_id}",
            booking_id=booking.id,
        )

    lost_race = AlreadyBound(f"Booking {booking.id} was bound concurrently", booking_id=booking.id)
    booking.bound_transport_id = transport_id
    booking.bound_quotation_id = quotation.id
    booking.bound_price = final_price
    booking.bound_at = now
    await flush_or_raise(db, lost_race)

    quotation.current_price = final_price
    quotation.accepted_by = actor.id
    quotation.accepted_at = now
    closed = await close_quotation(db, quotation, QuotationStatus.ACCEPTED, now, final_price=final_price)

    result = BindingResult(
        booking_id=booking.id,
        transport_id=transport_id,
        quotation_id=quotation.id,
        final_price=final_price,
        bound_at=now,
        counter_offer_id=counter_offer.id if counter_offer is not None else None,
        closed_counter_offer_ids=[co.id for co in closed],
    )

    res = await db.execute(
        select(Quotation)
        .where(
            Quotation.booking_id == booking.id,
            Quotation.id != quotation.id,
            Quotation.status == QuotationStatus.PENDING,
        )
        .order_by(Quotation.id)
        .execution_options(populate_existing=True)
    )
    for other in res.scalars().all():
        if is_past(other.expires_at, now):
            target = QuotationStatus.EXPIRED
            result.expired_quotation_ids.append(other.id)
        else:
            target = QuotationStatus.REJECTED
            result.rejected_quotation_ids.append(other.id)
        closed = await close_quotation(
            db, other, target, now,
            reason=COMPETING_OFFER_REASON if target == QuotationStatus.REJECTED else None,
        )
        result.closed_counter_offer_ids.extend(co.id for co in closed)

    logger.info(
        f"Booking {booking.id} bound to transport {transport_id} at {final_price} "
        f"(quotation {quotation.id}, {len(result.rejected_quotation_ids)} competing offers rejected)"
    )
    return result
