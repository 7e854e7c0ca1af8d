from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from moveprice.db.session import get_db
from moveprice.schemas.counter_offer import CounterOfferOut, CounterOfferRespond, CounterOfferResponseOut
from moveprice.core.security import Actor, get_current_actor, require_role
from moveprice.core.enums import AuditAction, UserRole
from moveprice.core.audit_decorator import audit_log
from moveprice.core.rate_limit import check_rate_limit
from moveprice.core.auth_utils import check_can_view, check_quotation_owner
from moveprice.core.response_builders import build_counter_offer_response, build_negotiation_response
from moveprice.services import negotiation
from moveprice.services.transitions import load_booking, load_counter_offer, load_quotation
from moveprice.utils.clock import utcnow

router = APIRouter(prefix="/counter-offers", tags=["counter-offers"])


@router.get("/{counter_offer_id}", response_model=CounterOfferOut)
async def get_counter_offer(
    counter_offer_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    now = utcnow()
    counter_offer = await negotiation.get_counter_offer(db, counter_offer_id, now=now)
    quotation = await load_quotation(db, counter_offer.quotation_id)
    booking = await load_booking(db, quotation.booking_id)
    check_can_view(booking, quotation, actor)
    return build_counter_offer_response(counter_offer, now)


@router.post("/{counter_offer_id}/respond", response_model=CounterOfferResponseOut)
@audit_log(AuditAction.RESPOND_COUNTER_OFFER)
async def respond_counter_offer(
    counter_offer_id: int,
    payload: CounterOfferRespond,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(UserRole.TRANSPORT, UserRole.MANAGER)),
):
    """Accept or reject a customer's counter-offer. Accepting binds the booking."""
    await check_rate_limit(actor.id)

    counter_offer = await load_counter_offer(db, counter_offer_id)
    quotation = await load_quotation(db, counter_offer.quotation_id)
    check_quotation_owner(quotation, actor)

    now = utcnow()
    outcome = await negotiation.respond_counter_offer(
        db,
        counter_offer_id,
        payload.decision,
        actor,
        response_message=payload.response_message,
        now=now,
    )
    return build_negotiation_response(outcome, now)
