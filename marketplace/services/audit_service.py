"""Audit logging service: one row per status transition."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.models.audit_log import AuditLog
from marketplace.utils import new_id, utcnow

logger = structlog.get_logger()


async def record_transition(
    session: AsyncSession,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    before_status: Optional[str],
    after_status: str,
) -> AuditLog:
    """
    Create an audit log entry.

    Uses session.flush(); caller owns the transaction.
    """
    audit = AuditLog(
        id=new_id(),
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_status=before_status,
        after_status=after_status,
        created_at=utcnow(),
    )
    session.add(audit)
    await session.flush()

    logger.info(
        "audit_log_created",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        before_status=before_status,
        after_status=after_status,
    )
    return audit
