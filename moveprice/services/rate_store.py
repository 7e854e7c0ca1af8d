"""Read-only access to the rate configuration owned by the transport pricing service."""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from moveprice.core.exceptions import NotFound
from moveprice.models.rate_card import CategoryRate, VehicleRateCard
from moveprice.schemas.pricing import CategoryRateSnapshot, RateSnapshot
from moveprice.utils.clock import as_utc

logger = logging.getLogger(__name__)


def _effective_at(model, at: datetime):
    at = as_utc(at)
    return (
        model.effective_from <= at,
        or_(model.effective_to.is_(None), model.effective_to > at),
    )


async def get_effective_rate_card(
    db: AsyncSession,
    transport_id: int,
    at: datetime,
    vehicle_type: Optional[str] = None,
) -> Optional[VehicleRateCard]:
    q = select(VehicleRateCard).where(
        VehicleRateCard.transport_id == transport_id,
        *_effective_at(VehicleRateCard, at),
    )
    if vehicle_type:
        q = q.where(VehicleRateCard.vehicle_type == vehicle_type)
    q = q.order_by(VehicleRateCard.effective_from.desc(), VehicleRateCard.id.desc()).limit(1)
    res = await db.execute(q)
    return res.scalars().first()


async def get_effective_category_rates(
    db: AsyncSession,
    transport_id: int,
    category_ids: Iterable[int],
    at: datetime,
) -> dict[int, CategoryRate]:
    ids = set(category_ids)
    if not ids:
        return {}
    res = await db.execute(
        select(CategoryRate)
        .where(
            CategoryRate.transport_id == transport_id,
            CategoryRate.category_id.in_(ids),
            *_effective_at(CategoryRate, at),
        )
        .order_by(CategoryRate.effective_from.asc(), CategoryRate.id.asc())
    )
    rates = {}
    # Later effective versions overwrite earlier ones.
    for rate in res.scalars().all():
        rates[rate.category_id] = rate
    return rates


def snapshot_rates(card: VehicleRateCard, categories: dict[int, CategoryRate]) -> RateSnapshot:
    return RateSnapshot(
        rate_card_id=card.id,
        transport_id=card.transport_id,
        base_price=int(card.base_price),
        per_km_first_4km=int(card.per_km_first_4km),
        per_km_5_to_40km=int(card.per_km_5_to_40km),
        per_km_after_40km=int(card.per_km_after_40km),
        peak_hour_multiplier=card.peak_hour_multiplier,
        weekend_multiplier=card.weekend_multiplier,
        holiday_multiplier=card.holiday_multiplier,
        no_elevator_fee=int(card.no_elevator_fee),
        categories={
            category_id: CategoryRateSnapshot(
                category_id=category_id,
                rate_id=rate.id,
                price_per_unit=int(rate.price_per_unit),
                fragile_multiplier=rate.fragile_multiplier,
                disassembly_multiplier=rate.disassembly_multiplier,
                heavy_multiplier=rate.heavy_multiplier,
            )
            for category_id, rate in categories.items()
        },
    )


async def load_rate_snapshot(
    db: AsyncSession,
    transport_id: int,
    category_ids: Iterable[int],
    at: datetime,
    vehicle_type: Optional[str] = None,
) -> RateSnapshot:
    card = await get_effective_rate_card(db, transport_id, at, vehicle_type)
    if card is None:
        raise NotFound("Vehicle rate card for transport", transport_id)
    categories = await get_effective_category_rates(db, transport_id, category_ids, at)
    logger.debug(
        f"Loaded rate card {card.id} for transport {transport_id} with {len(categories)} category rates"
    )
    return snapshot_rates(card, categories)
