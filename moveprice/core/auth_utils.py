"""Authorization checks against negotiation participants"""
from fastapi import HTTPException
from moveprice.core.enums import UserRole
from moveprice.core.security import Actor
from moveprice.models.booking import Booking
from moveprice.models.quotation import Quotation


def check_booking_owner(booking: Booking, actor: Actor) -> None:

    if actor.role == UserRole.MANAGER:
        return
    if actor.role != UserRole.CUSTOMER or booking.customer_id != actor.id:
        raise HTTPException(
            status_code=403,
            detail="Forbidden: You can only negotiate on your own bookings"
        )


def check_quotation_owner(quotation: Quotation, actor: Actor) -> None:

    if actor.role == UserRole.MANAGER:
        return
    if actor.role != UserRole.TRANSPORT or quotation.transport_id != actor.id:
        raise HTTPException(
            status_code=403,
            detail="Forbidden: You can only respond on your own quotations"
        )


def check_can_view(booking: Booking, quotation: Quotation | None, actor: Actor) -> None:

    if actor.role == UserRole.MANAGER:
        return
    if actor.role == UserRole.CUSTOMER and booking.customer_id == actor.id:
        return
    if actor.role == UserRole.TRANSPORT and quotation is not None and quotation.transport_id == actor.id:
        return
    raise HTTPException(status_code=403, detail="Forbidden: not a participant of this negotiation")
