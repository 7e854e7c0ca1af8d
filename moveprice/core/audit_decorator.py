import logging
from functools import wraps
from typing import Callable
from sqlalchemy.ext.asyncio import AsyncSession
from moveprice.core.audit_log import log_audit
from moveprice.core.enums import AuditAction

logger = logging.getLogger(__name__)


def audit_log(action: AuditAction) -> Callable:
    """Audit a route after it succeeds. Expects ``db`` and ``actor`` keyword arguments."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            db: AsyncSession = kwargs.get("db")
            actor = kwargs.get("actor")

            if not db or not actor:
                return result

            payload = None
            for key in ["payload", "data", "body"]:
                if key in kwargs:
                    payload = kwargs[key]
                    break
            if payload is None:
                payload = {k: v for k, v in kwargs.items() if k.endswith("_id")}

            await log_audit(db, actor, action, payload)
            return result

        return wrapper
    return decorator
