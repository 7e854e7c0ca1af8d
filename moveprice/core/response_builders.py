from datetime import datetime
from typing import Optional
from moveprice.models.booking import Booking
from moveprice.models.counter_offer import CounterOffer
from moveprice.models.quotation import Quotation
from moveprice.models.status_event import StatusEvent
from moveprice.schemas.booking import BindingOut, BookingBindingOut
from moveprice.schemas.counter_offer import CounterOfferOut, CounterOfferResponseOut
from moveprice.schemas.event import StatusEventOut
from moveprice.schemas.quotation import QuotationOut
from moveprice.services.binding import BindingResult
from moveprice.services.negotiation import (
    NegotiationOutcome,
    can_respond,
    hours_until_expiration,
    percentage_change,
    price_difference,
)
from moveprice.utils.clock import is_past, utcnow


def build_quotation_response(quotation: Quotation) -> QuotationOut:
    stored = quotation.price_breakdown or {}
    return QuotationOut(
        id=quotation.id,
        booking_id=quotation.booking_id,
        transport_id=quotation.transport_id,
        status=quotation.status,
        base_price=quotation.base_price,
        distance_price=quotation.distance_price,
        items_price=quotation.items_price,
        floor_fees=quotation.floor_fees,
        time_multiplier=float(quotation.time_multiplier),
        subtotal=quotation.subtotal,
        total_price=quotation.total_price,
        current_price=quotation.current_price,
        breakdown=stored.get("breakdown", []),
        notes=quotation.notes,
        expires_at=quotation.expires_at,
        responded_at=quotation.responded_at,
        accepted_at=quotation.accepted_at,
        rejection_reason=quotation.rejection_reason,
        created_at=quotation.created_at,
        updated_at=quotation.updated_at,
    )


def build_counter_offer_response(counter_offer: CounterOffer, now: Optional[datetime] = None) -> CounterOfferOut:
    now = now or utcnow()
    return CounterOfferOut(
        id=counter_offer.id,
        quotation_id=counter_offer.quotation_id,
        original_price=counter_offer.original_price,
        offered_price=counter_offer.offered_price,
        price_difference=price_difference(counter_offer),
        percentage_change=percentage_change(counter_offer),
        reason=counter_offer.reason,
        message=counter_offer.message,
        status=counter_offer.status,
        offered_by=counter_offer.offered_by,
        expires_at=counter_offer.expires_at,
        hours_until_expiration=hours_until_expiration(counter_offer, now),
        is_expired=is_past(counter_offer.expires_at, now),
        can_respond=can_respond(counter_offer, now),
        responded_at=counter_offer.responded_at,
        responded_by=counter_offer.responded_by,
        response_message=counter_offer.response_message,
        created_at=counter_offer.created_at,
    )


def build_binding_response(result: BindingResult) -> BindingOut:
    return BindingOut(
        booking_id=result.booking_id,
        transport_id=result.transport_id,
        quotation_id=result.quotation_id,
        final_price=result.final_price,
        bound_at=result.bound_at,
        counter_offer_id=result.counter_offer_id,
        rejected_quotation_ids=result.rejected_quotation_ids,
        expired_quotation_ids=result.expired_quotation_ids,
        closed_counter_offer_ids=result.closed_counter_offer_ids,
    )


def build_negotiation_response(outcome: NegotiationOutcome, now: Optional[datetime] = None) -> CounterOfferResponseOut:
    return CounterOfferResponseOut(
        counter_offer=build_counter_offer_response(outcome.counter_offer, now),
        binding=build_binding_response(outcome.binding) if outcome.binding is not None else None,
    )


def build_booking_binding_response(booking: Booking) -> BookingBindingOut:
    return BookingBindingOut(
        booking_id=booking.id,
        is_bound=booking.is_bound,
        transport_id=booking.bound_transport_id,
        quotation_id=booking.bound_quotation_id,
        final_price=booking.bound_price,
        bound_at=booking.bound_at,
    )


def build_event_response(event: StatusEvent) -> StatusEventOut:
    return StatusEventOut(
        id=event.id,
        event_type=event.event_type,
        quotation_id=event.quotation_id,
        booking_id=event.booking_id,
        counter_offer_id=event.counter_offer_id,
        status=event.status,
        final_price=event.final_price,
        payload=event.payload,
        attempts=event.attempts,
        delivered_at=event.delivered_at,
        last_error=event.last_error,
        created_at=event.created_at,
    )


def build_quotation_response_list(quotations: list) -> list:
    return [build_quotation_response(q) for q in quotations]


def build_counter_offer_response_list(counter_offers: list, now: Optional[datetime] = None) -> list:
    now = now or utcnow()
    return [build_counter_offer_response(co, now) for co in counter_offers]


def build_event_response_list(events: list) -> list:
    return [build_event_response(e) for e in events]
