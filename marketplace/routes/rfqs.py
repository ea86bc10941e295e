from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.exceptions import PermissionDeniedError
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.models.rfq import Rfq
from marketplace.routes.quotations import quotation_to_response, visible_to_buyer
from marketplace.schemas.common import DecisionRequest, PaginatedResponse, paginate
from marketplace.schemas.quotation import QuotationResponse
from marketplace.schemas.rfq import RfqCreate, RfqResponse
from marketplace.schemas.supplier import ConfirmMatchesRequest, SupplierMatchResponse
from marketplace.services import matching_service, rfq_service
from marketplace.services.entity_store import QuotationStore, RfqStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()

SUPPLIER_VISIBLE_STATUSES = ("matched", "quoted")


def rfq_to_response(rfq: Rfq) -> RfqResponse:
    return RfqResponse(
        id=rfq.id,
        buyer_id=rfq.buyer_id,
        title=rfq.title,
        category=rfq.category,
        description=rfq.description,
        quantity=rfq.quantity,
        unit=rfq.unit,
        target_price=rfq.target_price,
        max_price=rfq.max_price,
        delivery_timeline=rfq.delivery_timeline,
        shipping_terms=rfq.shipping_terms,
        status=rfq.status,
        matched_suppliers=list(rfq.matched_suppliers or []),
        quotations_count=rfq.quotations_count,
        expires_at=iso(rfq.expires_at),
        approved_at=iso(rfq.approved_at),
        closed_at=iso(rfq.closed_at),
        close_reason=rfq.close_reason,
        awarded_quotation_id=rfq.awarded_quotation_id,
        created_at=iso(rfq.created_at),
        updated_at=iso(rfq.updated_at),
    )


def _check_can_view(rfq: Rfq, current_user: dict) -> None:
    role = current_user["role"]
    if role == "admin":
        return
    if role == "buyer" and rfq.buyer_id == current_user["user_id"]:
        return
    if (
        role == "supplier"
        and rfq.status in SUPPLIER_VISIBLE_STATUSES
        and current_user["user_id"] in (rfq.matched_suppliers or [])
    ):
        return
    raise PermissionDeniedError("You cannot access this RFQ", rfq_id=rfq.id)


@router.post("", response_model=RfqResponse, status_code=status.HTTP_201_CREATED)
async def create_rfq(
    body: RfqCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("buyer")),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_none=True)
    result = await rfq_service.create_rfq(db, current_user["user_id"], **fields)
    return rfq_to_response(result.unwrap())


@router.get("", response_model=PaginatedResponse[RfqResponse])
async def list_rfqs(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    rfq_status: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Scoped by role:
    - buyer: own RFQs
    - supplier: open RFQs they were matched to
    - admin: everything
    """
    filters = {}
    if rfq_status:
        filters["status"] = rfq_status
    if category:
        filters["category"] = category
    role = current_user["role"]
    if role == "buyer":
        filters["buyer_id"] = current_user["user_id"]

    rfqs = await RfqStore(db).list(**filters)
    if role == "supplier":
        rfqs = [
            r for r in rfqs
            if r.status in SUPPLIER_VISIBLE_STATUSES
            and current_user["user_id"] in (r.matched_suppliers or [])
        ]

    items, meta = paginate(rfqs, page, limit)
    return PaginatedResponse(data=[rfq_to_response(r) for r in items], pagination=meta)


@router.get("/{rfq_id}", response_model=RfqResponse)
async def get_rfq(
    rfq_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqStore(db).get(rfq_id)
    _check_can_view(rfq, current_user)
    return rfq_to_response(rfq)


@router.post("/{rfq_id}/review", response_model=RfqResponse)
async def review_rfq(
    rfq_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """decision: approve | reject"""
    result = await rfq_service.review(db, rfq_id, body.decision, current_user["user_id"])
    return rfq_to_response(result.unwrap())


@router.get("/{rfq_id}/matches", response_model=list[SupplierMatchResponse])
async def preview_matches(
    rfq_id: str,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    matches = await matching_service.match_suppliers(db, rfq_id)
    return [SupplierMatchResponse(**m.to_dict()) for m in matches]


@router.post("/{rfq_id}/matches", response_model=RfqResponse)
async def confirm_matches(
    rfq_id: str,
    body: ConfirmMatchesRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await matching_service.confirm_matches(
        db, rfq_id, body.supplier_ids, current_user["user_id"]
    )
    return rfq_to_response(result.unwrap())


@router.get("/{rfq_id}/quotations", response_model=list[QuotationResponse])
async def list_rfq_quotations(
    rfq_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Buyers see quotations past the admin gate; suppliers see their own."""
    rfq = await RfqStore(db).get(rfq_id)
    _check_can_view(rfq, current_user)

    role = current_user["role"]
    filters = {"rfq_id": rfq_id}
    if role == "supplier":
        filters["supplier_id"] = current_user["user_id"]
    quotations = await QuotationStore(db).list(**filters)
    if role == "buyer":
        quotations = [q for q in quotations if visible_to_buyer(q)]
    return [quotation_to_response(q) for q in quotations]
