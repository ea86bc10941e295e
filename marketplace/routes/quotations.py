from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.exceptions import PermissionDeniedError
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.models.quotation import Quotation
from marketplace.routes.orders import order_to_response
from marketplace.schemas.common import DecisionRequest, PaginatedResponse, paginate
from marketplace.schemas.quotation import (
    BuyerDecisionResponse,
    QuotationCreate,
    QuotationResponse,
    QuotationRevise,
)
from marketplace.services import review_service
from marketplace.services.entity_store import QuotationStore, RfqStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()


def quotation_to_response(q: Quotation) -> QuotationResponse:
    return QuotationResponse(
        id=q.id,
        rfq_id=q.rfq_id,
        supplier_id=q.supplier_id,
        quoted_price=q.quoted_price,
        moq=q.moq,
        total_value=q.total_value,
        lead_time=q.lead_time,
        payment_terms=q.payment_terms,
        shipping_terms=q.shipping_terms,
        validity_days=q.validity_days,
        quality_guarantee=bool(q.quality_guarantee),
        sample_available=bool(q.sample_available),
        notes=q.notes,
        status=q.status,
        submitted_at=iso(q.submitted_at),
        reviewed_at=iso(q.reviewed_at),
        decided_at=iso(q.decided_at),
    )


def visible_to_buyer(q: Quotation) -> bool:
    # Admin-rejected quotations never reach the buyer
    if q.status in ("sent_to_buyer", "accepted"):
        return True
    return q.status == "rejected" and q.decided_at is not None


async def _load_for_viewer(db: AsyncSession, quotation_id: str, current_user: dict) -> Quotation:
    quotation = await QuotationStore(db).get(quotation_id)
    role = current_user["role"]
    if role == "admin":
        return quotation
    if role == "supplier" and quotation.supplier_id == current_user["user_id"]:
        return quotation
    if role == "buyer" and visible_to_buyer(quotation):
        rfq = await RfqStore(db).get(quotation.rfq_id)
        if rfq.buyer_id == current_user["user_id"]:
            return quotation
    raise PermissionDeniedError("You cannot access this quotation", quotation_id=quotation_id)


@router.post("", response_model=QuotationResponse, status_code=status.HTTP_201_CREATED)
async def submit_quotation(
    body: QuotationCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump()
    rfq_id = fields.pop("rfq_id")
    result = await review_service.submit(db, current_user["user_id"], rfq_id, **fields)
    return quotation_to_response(result.unwrap())


@router.get("", response_model=PaginatedResponse[QuotationResponse])
async def list_quotations(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    quotation_status: Optional[str] = Query(None, alias="status"),
    rfq_id: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin", "supplier")),
    db: AsyncSession = Depends(get_db),
):
    """Admin review queue, or a supplier's own quotations."""
    filters = {}
    if quotation_status:
        filters["status"] = quotation_status
    if rfq_id:
        filters["rfq_id"] = rfq_id
    if current_user["role"] == "supplier":
        filters["supplier_id"] = current_user["user_id"]

    quotations = await QuotationStore(db).list(**filters)
    items, meta = paginate(quotations, page, limit)
    return PaginatedResponse(data=[quotation_to_response(q) for q in items], pagination=meta)


@router.get("/{quotation_id}", response_model=QuotationResponse)
async def get_quotation(
    quotation_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    quotation = await _load_for_viewer(db, quotation_id, current_user)
    return quotation_to_response(quotation)


@router.patch("/{quotation_id}", response_model=QuotationResponse)
async def revise_quotation(
    quotation_id: str,
    body: QuotationRevise,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    result = await review_service.revise(
        db,
        quotation_id,
        supplier_id=current_user["user_id"],
        **body.model_dump(exclude_unset=True),
    )
    return quotation_to_response(result.unwrap())


@router.post("/{quotation_id}/review", response_model=QuotationResponse)
async def review_quotation(
    quotation_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """decision: approve (sends to buyer) | reject"""
    result = await review_service.review(
        db, quotation_id, body.decision, current_user["user_id"]
    )
    return quotation_to_response(result.unwrap())


@router.post("/{quotation_id}/decision", response_model=BuyerDecisionResponse)
async def buyer_decision(
    quotation_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("buyer")),
    db: AsyncSession = Depends(get_db),
):
    """decision: accept (creates the order, closes the RFQ) | reject"""
    result = await review_service.buyer_decide(
        db, quotation_id, body.decision, buyer_id=current_user["user_id"]
    )
    outcome = result.unwrap()
    if body.decision == "accept":
        return BuyerDecisionResponse(
            quotation=quotation_to_response(outcome.quotation),
            order=order_to_response(outcome.order),
        )
    return BuyerDecisionResponse(quotation=quotation_to_response(outcome))
