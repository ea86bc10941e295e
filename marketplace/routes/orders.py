from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.database import get_db
from marketplace.exceptions import PermissionDeniedError
from marketplace.middleware.auth import get_current_user
from marketplace.models.order import Order
from marketplace.schemas.common import PaginatedResponse, paginate
from marketplace.schemas.order import OrderAdvance, OrderResponse
from marketplace.services import order_service
from marketplace.services.entity_store import OrderStore
from marketplace.utils import iso

logger = structlog.get_logger()
router = APIRouter()


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        rfq_id=order.rfq_id,
        quotation_id=order.quotation_id,
        buyer_id=order.buyer_id,
        supplier_id=order.supplier_id,
        order_value=order.order_value,
        quantity=order.quantity,
        unit_price=order.unit_price,
        payment_terms=order.payment_terms,
        delivery_terms=order.delivery_terms,
        status=order.status,
        expected_delivery=iso(order.expected_delivery),
        payment_received=order.payment_received,
        payment_pending=order.payment_pending,
        tracking_number=order.tracking_number,
        created_at=iso(order.created_at),
        updated_at=iso(order.updated_at),
    )


@router.get("", response_model=PaginatedResponse[OrderResponse])
async def list_orders(
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_orders_for(
        db, current_user["user_id"], current_user["role"], status=order_status
    )
    items, meta = paginate(orders, page, limit)
    return PaginatedResponse(data=[order_to_response(o) for o in items], pagination=meta)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderStore(db).get(order_id)
    if not order_service.can_manage_order(order, current_user["user_id"], current_user["role"]):
        raise PermissionDeniedError("You can only view your own orders", order_id=order_id)
    return order_to_response(order)


@router.post("/{order_id}/status", response_model=OrderResponse)
async def advance_order(
    order_id: str,
    body: OrderAdvance,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await order_service.advance_order(
        db,
        order_id,
        body.status,
        current_user["user_id"],
        current_user["role"],
        tracking_number=body.tracking_number,
    )
    return order_to_response(result.unwrap())
