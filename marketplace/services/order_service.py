"""
Order progression: buyer, supplier or admin moves an order along its
lifecycle. Status rules live in transition_authority.ORDER_WORKFLOW.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.exceptions import PermissionDeniedError
from marketplace.models.order import Order
from marketplace.services.entity_store import OrderStore
from marketplace.services.results import returns_result
from marketplace.services.transition_authority import transition_order

logger = structlog.get_logger()


def can_manage_order(order: Order, actor_id: str, actor_role: str) -> bool:
    return actor_role == "admin" or actor_id in (order.buyer_id, order.supplier_id)


@returns_result
async def advance_order(
    session: AsyncSession,
    order_id: str,
    target: str,
    actor_id: str,
    actor_role: str,
    tracking_number: Optional[str] = None,
) -> Order:
    order = await OrderStore(session).get(order_id)
    if not can_manage_order(order, actor_id, actor_role):
        raise PermissionDeniedError(
            "Only the order's buyer, supplier or an admin can update it",
            order_id=order_id,
        )
    return await transition_order(
        session, order_id, target, actor_id, tracking_number=tracking_number
    )


async def list_orders_for(
    session: AsyncSession,
    actor_id: str,
    actor_role: str,
    status: Optional[str] = None,
) -> list[Order]:
    """Orders visible to the caller: all for admins, own side otherwise."""
    filters = {}
    if status:
        filters["status"] = status
    if actor_role == "buyer":
        filters["buyer_id"] = actor_id
    elif actor_role == "supplier":
        filters["supplier_id"] = actor_id
    return await OrderStore(session).list(**filters)
