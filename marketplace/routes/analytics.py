"""
Marketplace analytics API: /api/v1/analytics

  - platform: counts by status, GMV, average order value, pending payments
  - supplier: quotation acceptance, orders, revenue
  - buyer: RFQs, orders, spend
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import check_self_or_admin, require_roles
from marketplace.services import analytics_service

router = APIRouter()


@router.get("/platform")
async def get_platform_analytics(
    months: int = Query(6, ge=1, le=24),
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    stats = await analytics_service.platform_stats(db, months=months)
    return stats.to_dict()


@router.get("/suppliers/{supplier_id}")
async def get_supplier_analytics(
    supplier_id: str,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin", "supplier")),
    db: AsyncSession = Depends(get_db),
):
    check_self_or_admin(current_user, supplier_id)
    stats = await analytics_service.supplier_stats(db, supplier_id)
    return stats.to_dict()


@router.get("/buyers/{buyer_id}")
async def get_buyer_analytics(
    buyer_id: str,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin", "buyer")),
    db: AsyncSession = Depends(get_db),
):
    check_self_or_admin(current_user, buyer_id)
    stats = await analytics_service.buyer_stats(db, buyer_id)
    return stats.to_dict()
