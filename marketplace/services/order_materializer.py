"""
Order materializer: builds the Order for an accepted quotation.

  order_value       = quotation.total_value (frozen)
  payment_received  = order_value * ADVANCE_PAYMENT_RATIO, half-up to the cent
  payment_pending   = order_value - payment_received (exact complement)
  expected_delivery = now + ORDER_DELIVERY_DAYS

Uses the caller's session (no commit). Runs inside the accept critical section.
"""

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.config import settings
from marketplace.exceptions import DuplicateOrderError, InvalidStateError, ValidationError
from marketplace.models.order import Order
from marketplace.models.quotation import Quotation
from marketplace.models.rfq import Rfq
from marketplace.services.audit_service import record_transition
from marketplace.services.entity_store import OrderStore
from marketplace.utils import utcnow

logger = structlog.get_logger()

MATERIALIZABLE_RFQ_STATUSES = ("matched", "quoted")


def compute_payment_split(order_value_cents: int, ratio: float) -> tuple[int, int]:
    """Returns (payment_received_cents, payment_pending_cents)."""
    received = (Decimal(order_value_cents) * Decimal(str(ratio))).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    received_cents = int(received)
    return received_cents, order_value_cents - received_cents


async def materialize(
    session: AsyncSession,
    quotation: Quotation,
    rfq: Rfq,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    Create the Order for ``quotation``.

    Raises DuplicateOrderError (carrying the existing order) when one
    already references the quotation.
    """
    if quotation.rfq_id != rfq.id:
        raise ValidationError(
            f"Quotation {quotation.id} does not belong to RFQ {rfq.id}",
            field="rfq_id",
        )
    orders = OrderStore(session)
    existing = await orders.find_one(quotation_id=quotation.id)
    if existing is not None:
        raise DuplicateOrderError(quotation.id, existing)
    if rfq.status not in MATERIALIZABLE_RFQ_STATUSES:
        raise InvalidStateError("RFQ", rfq.status, MATERIALIZABLE_RFQ_STATUSES)

    now = now or utcnow()
    order_value_cents = quotation.total_value_cents
    received_cents, pending_cents = compute_payment_split(
        order_value_cents, settings.ADVANCE_PAYMENT_RATIO
    )

    order = await orders.create(
        rfq_id=rfq.id,
        quotation_id=quotation.id,
        buyer_id=rfq.buyer_id,
        supplier_id=quotation.supplier_id,
        order_value_cents=order_value_cents,
        quantity=quotation.moq,
        unit_price_cents=quotation.quoted_price_cents,
        payment_terms=quotation.payment_terms,
        delivery_terms=quotation.shipping_terms or rfq.shipping_terms,
        status="confirmed",
        expected_delivery=now + timedelta(days=settings.ORDER_DELIVERY_DAYS),
        payment_received_cents=received_cents,
        payment_pending_cents=pending_cents,
    )
    await record_transition(
        session, actor_id, "materialize", "Order", order.id, None, order.status
    )

    logger.info(
        "order_materialized",
        order_id=order.id,
        quotation_id=quotation.id,
        rfq_id=rfq.id,
        order_value_cents=order_value_cents,
        payment_received_cents=received_cents,
    )
    return order


async def materialize_once(
    session: AsyncSession,
    quotation: Quotation,
    rfq: Rfq,
    actor_id: Optional[str] = None,
) -> Order:
    """materialize(), treating an already-materialized quotation as a no-op."""
    try:
        return await materialize(session, quotation, rfq, actor_id=actor_id)
    except DuplicateOrderError as exc:
        logger.warning(
            "duplicate_order_ignored",
            quotation_id=quotation.id,
            order_id=exc.existing_order.id,
        )
        return exc.existing_order
