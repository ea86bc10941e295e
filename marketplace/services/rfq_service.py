"""
RFQ creation and the expiry sweep.

New RFQs start pending_approval and expire RFQ_AUTO_EXPIRE_DAYS after
creation. The sweep closes every open RFQ past its expires_at; it only
moves status forward and is safe to run repeatedly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.config import settings
from marketplace.constants import is_known_category
from marketplace.exceptions import InvalidStateError, ValidationError
from marketplace.models.rfq import Rfq
from marketplace.services.entity_store import RfqStore, UserStore
from marketplace.services.results import OperationResult, returns_result
from marketplace.services.transition_authority import (
    RFQ_WORKFLOW,
    expire_rfq,
    review_rfq,
)
from marketplace.utils import to_cents, utcnow

logger = structlog.get_logger()

OPTIONAL_FIELDS = ("description", "max_price", "delivery_timeline", "shipping_terms")


@dataclass
class ExpirySweepResult:
    checked: int = 0
    expired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _money_cents(value: Any, field_name: str) -> int:
    try:
        cents = to_cents(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name)
    if cents <= 0:
        raise ValidationError(f"{field_name} must be greater than 0", field=field_name)
    return cents


@returns_result
async def create_rfq(
    session: AsyncSession,
    buyer_id: str,
    title: str,
    category: str,
    quantity: int,
    unit: str,
    target_price: Decimal,
    **optional: Any,
) -> Rfq:
    unknown = sorted(set(optional) - set(OPTIONAL_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown RFQ field(s): {', '.join(unknown)}", field=unknown[0])
    if not is_known_category(category):
        raise ValidationError(f"Unknown category: {category}", field="category")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", field="quantity")

    target_cents = _money_cents(target_price, "target_price")
    max_price = optional.pop("max_price", None)
    max_cents = None
    if max_price is not None:
        max_cents = _money_cents(max_price, "max_price")
        if max_cents < target_cents:
            raise ValidationError(
                "max_price must be greater than or equal to target_price",
                field="max_price",
            )

    buyer = await UserStore(session).get(buyer_id)
    if buyer.user_type != "buyer":
        raise InvalidStateError("User", buyer.user_type, ("buyer",))

    lifetime = timedelta(days=settings.RFQ_AUTO_EXPIRE_DAYS)
    rfq = await RfqStore(session).create(
        buyer_id=buyer_id,
        title=title,
        category=category,
        quantity=quantity,
        unit=unit,
        target_price_cents=target_cents,
        max_price_cents=max_cents,
        status=RFQ_WORKFLOW.initial_state,
        matched_suppliers=[],
        quotations_count=0,
        expires_at=utcnow() + lifetime,
        **optional,
    )
    # Anchor expiry to the stored creation time
    rfq.expires_at = rfq.created_at + lifetime
    await session.flush()

    logger.info(
        "rfq_created",
        rfq_id=rfq.id,
        buyer_id=buyer_id,
        category=category,
        expires_at=rfq.expires_at.isoformat(),
    )
    return rfq


async def review(
    session: AsyncSession, rfq_id: str, decision: str, actor_id: Optional[str] = None
) -> OperationResult[Rfq]:
    """Admin approve/reject of a pending RFQ."""
    return await review_rfq(session, rfq_id, decision, actor_id)


async def expire_rfqs(
    session: AsyncSession,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
) -> ExpirySweepResult:
    """Close every open RFQ whose expires_at is before ``now``."""
    now = now or utcnow()
    open_states = tuple(
        s for s in RFQ_WORKFLOW.states if s not in RFQ_WORKFLOW.terminal_states
    )
    result = await session.execute(
        select(Rfq.id)
        .where(Rfq.status.in_(open_states), Rfq.expires_at < now)
        .order_by(Rfq.expires_at.asc(), Rfq.pk.asc())
    )
    overdue = [row[0] for row in result.all()]

    sweep = ExpirySweepResult(checked=len(overdue))
    for rfq_id in overdue:
        outcome = await expire_rfq(session, rfq_id, now=now, actor_id=actor_id)
        if outcome.success:
            sweep.expired.append(rfq_id)
        else:
            sweep.failed.append(rfq_id)
            logger.warning("rfq_expiry_failed", rfq_id=rfq_id, error_code=outcome.error_code)

    logger.info("rfq_expiry_sweep_complete", checked=sweep.checked, expired=len(sweep.expired))
    return sweep
