"""Price computation endpoint with Redis caching"""
import json
import logging
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from moveprice.core.config import settings
from moveprice.core.metrics import cache_hits, cache_misses, price_calculations
from moveprice.core.redis import get_redis
from moveprice.core.security import Actor, get_current_actor
from moveprice.db.session import get_db
from moveprice.schemas.pricing import PriceBreakdown, PriceRequest, RateSnapshot
from moveprice.services.pricing import calculate_price
from moveprice.services.rate_store import load_rate_snapshot
from moveprice.utils.clock import utcnow
from moveprice.utils.hashing import payload_hash

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/pricing", tags=["pricing"])


def _generate_cache_key(req: PriceRequest, rates: RateSnapshot) -> str:
    # Keyed on every rate version in the snapshot; a new card or category rate misses the cache.
    category_rates = ",".join(
        f"{category_id}={rate.rate_id}" for category_id, rate in sorted(rates.categories.items())
    )
    return f"price:{rates.rate_card_id}:{category_rates}:{payload_hash(req.model_dump(mode='json'))}"


def compute_breakdown(req: PriceRequest, rates: RateSnapshot) -> PriceBreakdown:
    breakdown = calculate_price(
        req.distance_km,
        req.items,
        rates,
        req.floor_context(),
        req.time_context(settings.holiday_dates, settings.LOCAL_TIMEZONE),
    )
    price_calculations.labels(time_multiplier=str(breakdown.time_multiplier)).inc()
    return breakdown


@router.post("/calculate", response_model=PriceBreakdown)
async def calculate(
    req: PriceRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    now = utcnow()
    rates = await load_rate_snapshot(db, req.transport_id, [item.category_id for item in req.items], now)

    cache_key = _generate_cache_key(req, rates)
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(cache_key)
            if cached:
                cache_hits.labels(cache_key="price").inc()
                return PriceBreakdown(**json.loads(cached))
        except RedisError as e:
            logger.warning(f"Cache retrieval failed: {e}")
        cache_misses.labels(cache_key="price").inc()

    result = compute_breakdown(req, rates)

    if redis is not None:
        try:
            await redis.set(cache_key, result.model_dump_json(), ex=settings.PRICE_CACHE_TTL)
        except RedisError as e:
            logger.warning(f"Cache write failed: {e}")

    return result
