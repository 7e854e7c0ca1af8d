import json
import logging
from redis.exceptions import RedisError
from moveprice.core.redis import get_redis
from moveprice.core.config import settings

logger = logging.getLogger(__name__)

async def get_idempotent(key: str, scope: str = ""):
    redis = get_redis()
    if not key or redis is None:
        return None
    try:
        v = await redis.get(f"idemp:{scope}:{key}")
    except RedisError as e:
        logger.warning(f"Idempotency lookup failed: {e}")
        return None
    return json.loads(v) if v else None

async def set_idempotent(key: str, value: dict, scope: str = ""):
    redis = get_redis()
    if not key or redis is None:
        return
    try:
        await redis.set(f"idemp:{scope}:{key}", json.dumps(value, default=str), ex=settings.IDEMPOTENCY_TTL)
    except RedisError as e:
        logger.warning(f"Idempotency store failed: {e}")
