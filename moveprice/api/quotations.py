from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from moveprice.api.pricing import compute_breakdown
from moveprice.db.session import get_db
from moveprice.schemas.quotation import QuotationSubmit, QuotationOut, QuotationReject
from moveprice.schemas.counter_offer import CounterOfferCreate, CounterOfferOut
from moveprice.schemas.booking import BindingOut
from moveprice.core.security import Actor, get_current_actor, require_role
from moveprice.core.enums import AuditAction, UserRole
from moveprice.core.audit_decorator import audit_log
from moveprice.core.rate_limit import check_rate_limit
from moveprice.core.auth_utils import check_booking_owner, check_can_view
from moveprice.core.response_builders import (
    build_binding_response,
    build_counter_offer_response,
    build_counter_offer_response_list,
    build_quotation_response,
    build_quotation_response_list,
)
from moveprice.services import negotiation, quotations
from moveprice.services.rate_store import load_rate_snapshot
from moveprice.services.transitions import load_booking, load_quotation
from moveprice.utils.clock import utcnow
from moveprice.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/quotations", tags=["quotations"])

customer_or_manager = require_role(UserRole.CUSTOMER, UserRole.MANAGER)
transport_or_manager = require_role(UserRole.TRANSPORT, UserRole.MANAGER)


async def _load_for_customer(db: AsyncSession, quotation_id: int, actor: Actor):
    quotation = await load_quotation(db, quotation_id)
    booking = await load_booking(db, quotation.booking_id)
    check_booking_owner(booking, actor)
    return quotation


@router.post("/", response_model=QuotationOut)
@audit_log(AuditAction.SUBMIT_QUOTATION)
async def submit_quotation(
    payload: QuotationSubmit,
    idempotency_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(transport_or_manager),
):
    """Price the move with the transport's current rates and file the result as an offer."""
    await check_rate_limit(actor.id)

    if actor.role == UserRole.TRANSPORT and payload.transport_id != actor.id:
        raise HTTPException(status_code=403, detail="Forbidden: You can only quote as your own company")

    if idempotency_key:
        prev = await get_idempotent(idempotency_key, scope=f"quotation:{actor.id}")
        if prev:
            return prev

    now = utcnow()
    rates = await load_rate_snapshot(
        db, payload.transport_id, [item.category_id for item in payload.items], now,
    )
    breakdown = compute_breakdown(payload, rates)
    quotation = await quotations.submit_quotation(
        db,
        payload.booking_id,
        payload.transport_id,
        breakdown,
        actor,
        rates=rates,
        notes=payload.notes,
        validity_hours=payload.validity_hours,
        now=now,
    )

    out = build_quotation_response(quotation)
    if idempotency_key:
        await set_idempotent(idempotency_key, out.model_dump(mode="json"), scope=f"quotation:{actor.id}")
    return out


@router.get("/", response_model=List[QuotationOut])
async def list_quotations(
    booking_id: int = Query(...),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    now = utcnow()
    booking = await load_booking(db, booking_id)
    if actor.role == UserRole.CUSTOMER:
        check_booking_owner(booking, actor)

    if active_only:
        items = await quotations.list_active(db, booking_id, now=now)
    else:
        items = await quotations.list_for_booking(db, booking_id, now=now)

    if actor.role == UserRole.TRANSPORT:
        items = [q for q in items if q.transport_id == actor.id]
    return build_quotation_response_list(items)


@router.get("/{quotation_id}", response_model=QuotationOut)
async def get_quotation(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    quotation = await quotations.get_quotation(db, quotation_id, now=utcnow())
    booking = await load_booking(db, quotation.booking_id)
    check_can_view(booking, quotation, actor)
    return build_quotation_response(quotation)


@router.post("/{quotation_id}/accept", response_model=BindingOut)
@audit_log(AuditAction.ACCEPT_QUOTATION)
async def accept_quotation(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(customer_or_manager),
):
    await check_rate_limit(actor.id)
    await _load_for_customer(db, quotation_id, actor)
    result = await quotations.accept_quotation(db, quotation_id, actor, now=utcnow())
    return build_binding_response(result)


@router.post("/{quotation_id}/reject", response_model=QuotationOut)
@audit_log(AuditAction.REJECT_QUOTATION)
async def reject_quotation(
    quotation_id: int,
    payload: Optional[QuotationReject] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(customer_or_manager),
):
    await check_rate_limit(actor.id)
    await _load_for_customer(db, quotation_id, actor)
    quotation = await quotations.reject_quotation(
        db, quotation_id, actor, reason=payload.reason if payload else None, now=utcnow(),
    )
    return build_quotation_response(quotation)


@router.post("/{quotation_id}/expire", response_model=QuotationOut)
@audit_log(AuditAction.EXPIRE_QUOTATION)
async def expire_quotation(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(UserRole.MANAGER)),
):
    quotation = await quotations.expire_quotation(db, quotation_id, now=utcnow())
    return build_quotation_response(quotation)


@router.post("/{quotation_id}/counter-offers", response_model=CounterOfferOut)
@audit_log(AuditAction.PROPOSE_COUNTER_OFFER)
async def propose_counter_offer(
    quotation_id: int,
    payload: CounterOfferCreate,
    idempotency_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(customer_or_manager),
):
    await check_rate_limit(actor.id)

    scope = f"counter_offer:{actor.id}:{quotation_id}"
    if idempotency_key:
        prev = await get_idempotent(idempotency_key, scope=scope)
        if prev:
            return prev

    await _load_for_customer(db, quotation_id, actor)
    now = utcnow()
    counter_offer = await negotiation.propose_counter_offer(
        db,
        quotation_id,
        payload.offered_price,
        actor,
        reason=payload.reason,
        message=payload.message,
        expiration_hours=payload.expiration_hours,
        now=now,
    )

    out = build_counter_offer_response(counter_offer, now)
    if idempotency_key:
        await set_idempotent(idempotency_key, out.model_dump(mode="json"), scope=scope)
    return out


@router.get("/{quotation_id}/counter-offers", response_model=List[CounterOfferOut])
async def list_counter_offers(
    quotation_id: int,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    now = utcnow()
    quotation = await load_quotation(db, quotation_id)
    booking = await load_booking(db, quotation.booking_id)
    check_can_view(booking, quotation, actor)
    counter_offers = await negotiation.list_counter_offers(db, quotation_id, now=now)
    return build_counter_offer_response_list(counter_offers, now)
