import logging
from fastapi import HTTPException
from redis.exceptions import RedisError
from moveprice.core.redis import get_redis
from moveprice.core.config import settings
from moveprice.core.metrics import rate_limit_exceeded

logger = logging.getLogger(__name__)

async def check_rate_limit(user_id: int):
    redis = get_redis()
    if redis is None:
        return
    key = f"rl:{user_id}"
    try:
        current = await redis.get(key)
        if current is None:
            await redis.set(key, "1", ex=settings.RATE_LIMIT_WINDOW)
            return
        count = int(current)
        if count < settings.RATE_LIMIT:
            await redis.incr(key)
            return
    except RedisError as e:
        logger.warning(f"Rate limit check skipped: {e}")
        return
    rate_limit_exceeded.labels(user_id=str(user_id)).inc()
    raise HTTPException(status_code=429, detail="Rate limit exceeded")
