from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.models.sample_request import SampleRequest
from marketplace.schemas.common import DecisionRequest, PaginatedResponse, paginate
from marketplace.schemas.sample import SampleRequestCreate, SampleRequestResponse, SampleShip
from marketplace.services import sample_service
from marketplace.services.entity_store import SampleRequestStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()


def sample_to_response(s: SampleRequest) -> SampleRequestResponse:
    return SampleRequestResponse(
        id=s.id,
        rfq_id=s.rfq_id,
        quotation_id=s.quotation_id,
        buyer_id=s.buyer_id,
        supplier_id=s.supplier_id,
        delivery_address=s.delivery_address,
        courier_service=s.courier_service,
        tracking_number=s.tracking_number,
        status=s.status,
        approved_at=iso(s.approved_at),
        shipped_at=iso(s.shipped_at),
        delivered_at=iso(s.delivered_at),
        created_at=iso(s.created_at),
    )


@router.post("", response_model=SampleRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_sample(
    body: SampleRequestCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("buyer")),
    db: AsyncSession = Depends(get_db),
):
    result = await sample_service.request_sample(
        db, body.quotation_id, current_user["user_id"], body.delivery_address
    )
    return sample_to_response(result.unwrap())


@router.get("", response_model=PaginatedResponse[SampleRequestResponse])
async def list_samples(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    sample_status: Optional[str] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    filters = {}
    if sample_status:
        filters["status"] = sample_status
    role = current_user["role"]
    if role == "buyer":
        filters["buyer_id"] = current_user["user_id"]
    elif role == "supplier":
        filters["supplier_id"] = current_user["user_id"]

    samples = await SampleRequestStore(db).list(**filters)
    items, meta = paginate(samples, page, limit)
    return PaginatedResponse(data=[sample_to_response(s) for s in items], pagination=meta)


@router.post("/{sample_id}/review", response_model=SampleRequestResponse)
async def review_sample(
    sample_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await sample_service.review_sample(
        db, sample_id, body.decision, current_user["user_id"]
    )
    return sample_to_response(result.unwrap())


@router.post("/{sample_id}/ship", response_model=SampleRequestResponse)
async def ship_sample(
    sample_id: str,
    body: SampleShip,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    result = await sample_service.ship_sample(
        db, sample_id, current_user["user_id"], body.courier_service, body.tracking_number
    )
    return sample_to_response(result.unwrap())


@router.post("/{sample_id}/deliver", response_model=SampleRequestResponse)
async def confirm_sample_delivery(
    sample_id: str,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("buyer")),
    db: AsyncSession = Depends(get_db),
):
    result = await sample_service.confirm_sample_delivery(
        db, sample_id, current_user["user_id"]
    )
    return sample_to_response(result.unwrap())
