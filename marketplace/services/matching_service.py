"""
Supplier matching: RFQ vs verified supplier profiles.

Eligibility: supplier is verified and lists the RFQ's category.

Score (integer, clamped to 0..100):
  50
  + min(years_in_business, 20) * 3 // 2     experience, up to 30
  + min(len(certifications), 5) * 3        certifications, up to 15
  + specificity                            5 for one category, 3 for two, else 1

Ranked by score descending, then supplier id ascending. match() is a
read-only preview; confirm_matches() writes matched_suppliers and moves the
RFQ approved -> matched.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.exceptions import InvalidStateError, ValidationError
from marketplace.models.rfq import Rfq
from marketplace.models.supplier import Supplier
from marketplace.services.entity_store import RfqStore, SupplierStore, critical_section
from marketplace.services.results import returns_result
from marketplace.services.transition_authority import (
    RFQ_WORKFLOW,
    apply_transition,
    rfq_lock_key,
)

logger = structlog.get_logger()

BASE_SCORE = 50
MAX_SCORED_YEARS = 20
MAX_SCORED_CERTIFICATIONS = 5
MATCHABLE_RFQ_STATUSES = ("approved", "matched")


@dataclass
class SupplierMatch:
    supplier_id: str
    company_name: str
    country: Optional[str]
    match_score: int
    years_in_business: int
    certifications: list[str]
    product_categories: list[str]

    def to_dict(self) -> dict:
        return asdict(self)


def _specificity(category_count: int) -> int:
    if category_count <= 1:
        return 5
    if category_count == 2:
        return 3
    return 1


def score_supplier(supplier: Supplier) -> int:
    """Deterministic 0..100 match score for an eligible supplier."""
    years = max(0, supplier.years_in_business or 0)
    certifications = len(set(supplier.certifications or []))
    categories = len(set(supplier.product_categories or []))

    score = (
        BASE_SCORE
        + min(years, MAX_SCORED_YEARS) * 3 // 2
        + min(certifications, MAX_SCORED_CERTIFICATIONS) * 3
        + _specificity(categories)
    )
    return max(0, min(100, score))


def is_eligible(supplier: Supplier, category: str) -> bool:
    return (
        supplier.verification_status == "verified"
        and category in (supplier.product_categories or [])
    )


async def _rank(session: AsyncSession, rfq: Rfq) -> list[SupplierMatch]:
    verified = await SupplierStore(session).list(verification_status="verified")
    matches = [
        SupplierMatch(
            supplier_id=s.id,
            company_name=s.company_name,
            country=s.country,
            match_score=score_supplier(s),
            years_in_business=s.years_in_business or 0,
            certifications=list(s.certifications or []),
            product_categories=list(s.product_categories or []),
        )
        for s in verified
        if is_eligible(s, rfq.category)
    ]
    matches.sort(key=lambda m: (-m.match_score, m.supplier_id))
    return matches


async def match_suppliers(session: AsyncSession, rfq_id: str) -> list[SupplierMatch]:
    """Ranked candidate suppliers for an approved or matched RFQ. Read-only."""
    rfq = await RfqStore(session).get(rfq_id)
    if rfq.status not in MATCHABLE_RFQ_STATUSES:
        raise InvalidStateError("RFQ", rfq.status, MATCHABLE_RFQ_STATUSES)

    matches = await _rank(session, rfq)
    logger.info(
        "suppliers_matched",
        rfq_id=rfq_id,
        category=rfq.category,
        candidates=len(matches),
    )
    return matches


@returns_result
async def confirm_matches(
    session: AsyncSession,
    rfq_id: str,
    supplier_ids: Optional[list[str]] = None,
    actor_id: Optional[str] = None,
) -> Rfq:
    """
    Record the matched suppliers and move the RFQ approved -> matched.

    With no ``supplier_ids`` every eligible supplier is recorded; otherwise
    the ids must be a non-empty subset of the eligible set.
    """
    rfqs = RfqStore(session)
    async with critical_section(session, rfq_lock_key(rfq_id)):
        rfq = await rfqs.get(rfq_id, for_update=True)
        if rfq.status != "approved":
            raise InvalidStateError("RFQ", rfq.status, ("approved",))

        ranked = await _rank(session, rfq)
        eligible = [m.supplier_id for m in ranked]
        if supplier_ids is None:
            chosen = eligible
        else:
            unknown = sorted(set(supplier_ids) - set(eligible))
            if unknown:
                raise ValidationError(
                    f"Suppliers not eligible for RFQ {rfq_id}: {', '.join(unknown)}",
                    field="supplier_ids",
                )
            wanted = set(supplier_ids)
            chosen = [sid for sid in eligible if sid in wanted]
        if not chosen:
            raise ValidationError(
                f"No eligible suppliers to match for RFQ {rfq_id}",
                field="supplier_ids",
            )

        await apply_transition(
            session, rfq, RFQ_WORKFLOW, "matched", actor_id,
            matched_suppliers=chosen,
        )

    logger.info("rfq_matches_confirmed", rfq_id=rfq_id, suppliers=len(chosen))
    return rfq
