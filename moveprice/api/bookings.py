from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from moveprice.db.session import get_db
from moveprice.schemas.booking import BookingBindingOut
from moveprice.core.security import Actor, get_current_actor
from moveprice.core.enums import UserRole
from moveprice.core.auth_utils import check_booking_owner
from moveprice.core.response_builders import build_booking_binding_response
from moveprice.services.transitions import load_booking

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/{booking_id}/binding", response_model=BookingBindingOut)
async def get_binding(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    booking = await load_booking(db, booking_id)
    if actor.role == UserRole.CUSTOMER:
        check_booking_owner(booking, actor)
    return build_booking_binding_response(booking)
