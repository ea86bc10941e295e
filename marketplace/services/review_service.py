"""
Quotation review workflow: supplier submission, admin gate, buyer decision.

  submit        matched supplier -> pending_review, takes one RFQ slot;
                one live quotation per supplier per RFQ
  revise        supplier edits price/moq while still pending_review
  review        admin approve (-> sent_to_buyer) | reject (frees the slot)
  buyer_decide  buyer accept (compound accept) | reject (frees the slot)

Every operation returns an OperationResult; MarketplaceError never escapes.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.config import settings
from marketplace.exceptions import (
    CapExceededError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from marketplace.models.quotation import Quotation
from marketplace.services.audit_service import record_transition
from marketplace.services.entity_store import (
    QuotationStore,
    RfqStore,
    SupplierStore,
    critical_section,
)
from marketplace.services.results import OperationResult, returns_result
from marketplace.services import transition_authority as authority
from marketplace.utils import to_cents, utcnow

logger = structlog.get_logger()

OPEN_FOR_QUOTATIONS = ("matched", "quoted")
# Statuses that hold a supplier's place on an RFQ
LIVE_QUOTATION_STATUSES = ("pending_review", "approved", "sent_to_buyer", "accepted")

_TERM_FIELDS = (
    "lead_time",
    "payment_terms",
    "shipping_terms",
    "quality_guarantee",
    "sample_available",
    "notes",
)


def _price_cents(value: Any) -> int:
    try:
        cents = to_cents(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid quoted_price: {value!r}", field="quoted_price")
    if cents <= 0:
        raise ValidationError("quoted_price must be greater than 0", field="quoted_price")
    return cents


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return value


def _validity_days(value: Any) -> int:
    days = _positive_int(value, "validity_days")
    low, high = settings.quotation_validity_days_range
    if not low <= days <= high:
        raise ValidationError(
            f"validity_days must be between {low} and {high}",
            field="validity_days",
            minimum=low,
            maximum=high,
        )
    return days


def _check_terms(terms: dict) -> None:
    unknown = sorted(set(terms) - set(_TERM_FIELDS))
    if unknown:
        raise ValidationError(
            f"Unknown quotation field(s): {', '.join(unknown)}", field=unknown[0]
        )


@returns_result
async def submit(
    session: AsyncSession,
    supplier_id: str,
    rfq_id: str,
    quoted_price: Decimal,
    moq: int,
    validity_days: int,
    **terms: Any,
) -> Quotation:
    """Create a pending_review quotation and take one of the RFQ's slots."""
    price_cents = _price_cents(quoted_price)
    moq = _positive_int(moq, "moq")
    validity_days = _validity_days(validity_days)
    _check_terms(terms)

    supplier = await SupplierStore(session).get(supplier_id)
    if supplier.verification_status != "verified":
        raise InvalidStateError("Supplier", supplier.verification_status, ("verified",))

    rfqs = RfqStore(session)
    async with critical_section(session, authority.rfq_lock_key(rfq_id)):
        rfq = await rfqs.get(rfq_id, for_update=True)
        if rfq.status not in OPEN_FOR_QUOTATIONS:
            raise InvalidStateError("RFQ", rfq.status, OPEN_FOR_QUOTATIONS)
        if supplier_id not in (rfq.matched_suppliers or []):
            raise PermissionDeniedError(
                f"Supplier {supplier_id} was not matched to RFQ {rfq_id}"
            )

        quotations = QuotationStore(session)
        live = await quotations.find_one(
            rfq_id=rfq_id, supplier_id=supplier_id, status=LIVE_QUOTATION_STATUSES
        )
        if live is not None:
            raise ValidationError(
                f"Supplier already has quotation {live.id} open on RFQ {rfq_id}",
                field="supplier_id",
                quotation_id=live.id,
            )

        limit = settings.MAX_QUOTATIONS_PER_RFQ
        if rfq.quotations_count >= limit:
            raise CapExceededError(rfq_id, limit)

        quotation = await quotations.create(
            rfq_id=rfq_id,
            supplier_id=supplier_id,
            quoted_price_cents=price_cents,
            moq=moq,
            validity_days=validity_days,
            status=authority.QUOTATION_WORKFLOW.initial_state,
            submitted_at=utcnow(),
            **terms,
        )
        rfq.quotations_count += 1
        rfq.updated_at = utcnow()
        await record_transition(
            session, supplier_id, "submit", "Quotation", quotation.id,
            None, quotation.status,
        )

    logger.info(
        "quotation_submitted",
        quotation_id=quotation.id,
        rfq_id=rfq_id,
        supplier_id=supplier_id,
        total_value_cents=quotation.total_value_cents,
        quotations_count=rfq.quotations_count,
    )
    return quotation


@returns_result
async def revise(
    session: AsyncSession,
    quotation_id: str,
    supplier_id: Optional[str] = None,
    quoted_price: Optional[Decimal] = None,
    moq: Optional[int] = None,
    validity_days: Optional[int] = None,
    **terms: Any,
) -> Quotation:
    """Supplier edit of a quotation still awaiting admin review."""
    _check_terms(terms)
    changes: dict[str, Any] = dict(terms)
    if quoted_price is not None:
        changes["quoted_price_cents"] = _price_cents(quoted_price)
    if moq is not None:
        changes["moq"] = _positive_int(moq, "moq")
    if validity_days is not None:
        changes["validity_days"] = _validity_days(validity_days)
    if not changes:
        raise ValidationError("Nothing to revise")

    quotations = QuotationStore(session)
    quotation = await quotations.get(quotation_id)
    if supplier_id is not None and quotation.supplier_id != supplier_id:
        raise PermissionDeniedError("Only the submitting supplier can revise a quotation")

    async with critical_section(session, authority.rfq_lock_key(quotation.rfq_id)):
        quotation = await quotations.get(quotation_id, for_update=True)
        if quotation.status != "pending_review":
            raise InvalidStateError("Quotation", quotation.status, ("pending_review",))
        quotation = await quotations.update(quotation_id, **changes)

    logger.info(
        "quotation_revised",
        quotation_id=quotation_id,
        fields=sorted(changes),
        total_value_cents=quotation.total_value_cents,
    )
    return quotation


async def review(
    session: AsyncSession,
    quotation_id: str,
    decision: str,
    actor_id: Optional[str] = None,
) -> OperationResult[Quotation]:
    """Admin gate: approve sends to the buyer, reject is terminal."""
    return await authority.review_quotation(session, quotation_id, decision, actor_id)


@returns_result
async def buyer_decide(
    session: AsyncSession,
    quotation_id: str,
    decision: str,
    buyer_id: Optional[str] = None,
) -> Any:
    """
    Buyer accept/reject of a sent_to_buyer quotation.

    accept -> AcceptOutcome (quotation, rfq, order); reject -> Quotation.
    """
    if decision not in ("accept", "reject"):
        raise ValidationError(f"Unknown buyer decision: {decision}", field="decision")

    quotation = await QuotationStore(session).get(quotation_id)
    if buyer_id is not None:
        rfq = await RfqStore(session).get(quotation.rfq_id)
        if rfq.buyer_id != buyer_id:
            raise PermissionDeniedError("Only the RFQ owner can decide on its quotations")

    if decision == "accept":
        return await authority.accept_quotation(session, quotation_id, buyer_id)
    return await authority.decline_quotation(session, quotation_id, buyer_id)
