from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.constants import ORDER_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import from_cents, new_id, utcnow


class Order(Base):
    __tablename__ = "orders"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    rfq_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rfqs.id"), nullable=False
    )
    quotation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quotations.id"), unique=True, nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("suppliers.id"), nullable=False
    )
    order_value_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_terms: Mapped[Optional[str]] = mapped_column(String(200))
    delivery_terms: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="confirmed")
    expected_delivery: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payment_received_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_pending_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(ORDER_STATUSES)})", name="chk_order_status"
        ),
        CheckConstraint("order_value_cents > 0", name="chk_order_value"),
        CheckConstraint(
            "payment_received_cents + payment_pending_cents = order_value_cents",
            name="chk_order_payment_split",
        ),
        Index("idx_orders_buyer", "buyer_id"),
        Index("idx_orders_supplier", "supplier_id"),
        Index("idx_orders_status", "status"),
    )

    @property
    def order_value(self) -> Decimal:
        return from_cents(self.order_value_cents)

    @property
    def unit_price(self) -> Decimal:
        return from_cents(self.unit_price_cents)

    @property
    def payment_received(self) -> Decimal:
        return from_cents(self.payment_received_cents)

    @property
    def payment_pending(self) -> Decimal:
        return from_cents(self.payment_pending_cents)
