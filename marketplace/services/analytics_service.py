"""
Marketplace analytics.

Platform (admin):
  - RFQ / quotation / order counts by status
  - GMV: sum of order_value over non-cancelled orders
  - average order value, outstanding (pending) payments
  - monthly GMV for the trailing N months
Supplier:
  - quotations submitted / accepted, acceptance rate
  - orders, revenue (non-cancelled order value)
Buyer:
  - RFQs posted, orders placed, spend
"""

from collections import OrderedDict
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.models.order import Order
from marketplace.models.quotation import Quotation
from marketplace.models.rfq import Rfq
from marketplace.models.supplier import Supplier
from marketplace.models.user import User
from marketplace.services.entity_store import SupplierStore, UserStore
from marketplace.utils import from_cents, utcnow

logger = structlog.get_logger()

_REVENUE_EXCLUDED = ("cancelled",)


@dataclass
class PlatformStats:
    users_by_type: dict[str, int]
    suppliers_by_verification: dict[str, int]
    rfqs_by_status: dict[str, int]
    quotations_by_status: dict[str, int]
    orders_by_status: dict[str, int]
    gmv_cents: int
    average_order_value_cents: int
    pending_payments_cents: int
    monthly_gmv_cents: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["gmv"] = str(from_cents(self.gmv_cents))
        data["average_order_value"] = str(from_cents(self.average_order_value_cents))
        data["pending_payments"] = str(from_cents(self.pending_payments_cents))
        return data


@dataclass
class SupplierStats:
    supplier_id: str
    quotations_submitted: int
    quotations_accepted: int
    acceptance_rate: Optional[float]   # % of decided quotations that were accepted
    orders: int
    revenue_cents: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["revenue"] = str(from_cents(self.revenue_cents))
        return data


@dataclass
class BuyerStats:
    buyer_id: str
    rfqs_by_status: dict[str, int]
    orders: int
    spend_cents: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["spend"] = str(from_cents(self.spend_cents))
        return data


async def _count_by(session: AsyncSession, column, *where) -> dict[str, int]:
    stmt = select(column, func.count()).group_by(column)
    if where:
        stmt = stmt.where(*where)
    result = await session.execute(stmt)
    return {key: int(count) for key, count in result.all()}


def _month_keys(now: datetime, months: int) -> list[str]:
    keys = []
    year, month = now.year, now.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


async def platform_stats(
    session: AsyncSession, months: int = 6, now: Optional[datetime] = None
) -> PlatformStats:
    now = now or utcnow()

    totals = await session.execute(
        select(
            func.coalesce(func.sum(Order.order_value_cents), 0),
            func.count(Order.pk),
            func.coalesce(func.sum(Order.payment_pending_cents), 0),
        ).where(Order.status.notin_(_REVENUE_EXCLUDED))
    )
    gmv_cents, order_count, pending_cents = totals.one()
    gmv_cents, order_count = int(gmv_cents), int(order_count)

    # Monthly buckets are built in Python to stay backend-neutral
    monthly: "OrderedDict[str, int]" = OrderedDict((k, 0) for k in _month_keys(now, months))
    rows = await session.execute(
        select(Order.created_at, Order.order_value_cents).where(
            Order.status.notin_(_REVENUE_EXCLUDED)
        )
    )
    for created_at, value_cents in rows.all():
        key = f"{created_at.year:04d}-{created_at.month:02d}"
        if key in monthly:
            monthly[key] += int(value_cents)

    stats = PlatformStats(
        users_by_type=await _count_by(session, User.user_type),
        suppliers_by_verification=await _count_by(session, Supplier.verification_status),
        rfqs_by_status=await _count_by(session, Rfq.status),
        quotations_by_status=await _count_by(session, Quotation.status),
        orders_by_status=await _count_by(session, Order.status),
        gmv_cents=gmv_cents,
        average_order_value_cents=gmv_cents // order_count if order_count else 0,
        pending_payments_cents=int(pending_cents),
        monthly_gmv_cents=dict(monthly),
    )
    logger.info("platform_stats_computed", gmv_cents=stats.gmv_cents, orders=order_count)
    return stats


async def supplier_stats(session: AsyncSession, supplier_id: str) -> SupplierStats:
    await SupplierStore(session).get(supplier_id)

    by_status = await _count_by(
        session, Quotation.status, Quotation.supplier_id == supplier_id
    )
    submitted = sum(by_status.values())
    accepted = by_status.get("accepted", 0)
    decided = accepted + by_status.get("rejected", 0)

    orders = await session.execute(
        select(
            func.count(Order.pk),
            func.coalesce(func.sum(Order.order_value_cents), 0),
        ).where(
            Order.supplier_id == supplier_id,
            Order.status.notin_(_REVENUE_EXCLUDED),
        )
    )
    order_count, revenue_cents = orders.one()

    return SupplierStats(
        supplier_id=supplier_id,
        quotations_submitted=submitted,
        quotations_accepted=accepted,
        acceptance_rate=round(accepted / decided * 100, 1) if decided else None,
        orders=int(order_count),
        revenue_cents=int(revenue_cents),
    )


async def buyer_stats(session: AsyncSession, buyer_id: str) -> BuyerStats:
    await UserStore(session).get(buyer_id)

    orders = await session.execute(
        select(
            func.count(Order.pk),
            func.coalesce(func.sum(Order.order_value_cents), 0),
        ).where(
            Order.buyer_id == buyer_id,
            Order.status.notin_(_REVENUE_EXCLUDED),
        )
    )
    order_count, spend_cents = orders.one()

    return BuyerStats(
        buyer_id=buyer_id,
        rfqs_by_status=await _count_by(session, Rfq.status, Rfq.buyer_id == buyer_id),
        orders=int(order_count),
        spend_cents=int(spend_cents),
    )
