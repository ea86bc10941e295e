from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.models.supplier import Supplier
from marketplace.schemas.common import DecisionRequest, PaginatedResponse, paginate
from marketplace.schemas.supplier import SupplierCreate, SupplierResponse, SupplierUpdate
from marketplace.services import supplier_service
from marketplace.services.entity_store import SupplierStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()


def supplier_to_response(supplier: Supplier) -> SupplierResponse:
    return SupplierResponse(
        id=supplier.id,
        company_name=supplier.company_name,
        country=supplier.country,
        product_categories=list(supplier.product_categories or []),
        certifications=list(supplier.certifications or []),
        years_in_business=supplier.years_in_business or 0,
        verification_status=supplier.verification_status,
        verified_at=iso(supplier.verified_at),
        created_at=iso(supplier.created_at),
    )


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
async def create_supplier_profile(
    body: SupplierCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    result = await supplier_service.create_profile(
        db, current_user["user_id"], **body.model_dump()
    )
    return supplier_to_response(result.unwrap())


@router.get("", response_model=PaginatedResponse[SupplierResponse])
async def list_suppliers(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    verification_status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin", "buyer")),
    db: AsyncSession = Depends(get_db),
):
    filters = {}
    if current_user["role"] != "admin":
        # Buyers only browse vetted suppliers
        filters["verification_status"] = "verified"
    elif verification_status:
        filters["verification_status"] = verification_status
    suppliers = await SupplierStore(db).list(**filters)
    if category:
        suppliers = [s for s in suppliers if category in (s.product_categories or [])]

    items, meta = paginate(suppliers, page, limit)
    return PaginatedResponse(data=[supplier_to_response(s) for s in items], pagination=meta)


@router.patch("/me", response_model=SupplierResponse)
async def update_my_profile(
    body: SupplierUpdate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    result = await supplier_service.update_profile(
        db, current_user["user_id"], **body.model_dump(exclude_unset=True)
    )
    return supplier_to_response(result.unwrap())


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    supplier = await SupplierStore(db).get(supplier_id)
    return supplier_to_response(supplier)


@router.post("/{supplier_id}/verification", response_model=SupplierResponse)
async def review_supplier(
    supplier_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """decision: verify | reject"""
    result = await supplier_service.review_supplier(
        db, supplier_id, body.decision, current_user["user_id"]
    )
    return supplier_to_response(result.unwrap())
