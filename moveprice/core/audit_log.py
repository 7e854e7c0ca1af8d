"""Audit trail for negotiation actions"""
import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from moveprice.models.audit import Audit
from moveprice.core.enums import AuditAction
from moveprice.core.security import Actor
from moveprice.utils.hashing import payload_hash

logger = logging.getLogger(__name__)


def _payload_dict(payload) -> dict:
    if payload is None:
        return {}
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_unset=True)
    if isinstance(payload, dict):
        return payload
    return {}


async def log_audit(
    db: AsyncSession,
    actor: Optional[Actor],
    action: AuditAction,
    payload=None,
    commit: bool = True,
) -> None:
    """Record an audit row. A failing audit write never fails the action it describes."""
    try:
        audit_record = Audit(
            actor_id=actor.id if actor else None,
            actor_role=str(actor.role) if actor else "system",
            endpoint=str(action),
            payload_hash=payload_hash(_payload_dict(payload)),
        )
        db.add(audit_record)
        if commit:
            await db.commit()
        else:
            await db.flush()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Audit logging failed for action {action}: {e}", exc_info=True)
