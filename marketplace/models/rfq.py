from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.constants import RFQ_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import from_cents, new_id, utcnow


class Rfq(Base):
    __tablename__ = "rfqs"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    target_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_price_cents: Mapped[Optional[int]] = mapped_column(BigInteger)
    delivery_timeline: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_terms: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="pending_approval")
    matched_suppliers: Mapped[list] = mapped_column(JSON, default=list)
    quotations_count: Mapped[int] = mapped_column(Integer, default=0)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    close_reason: Mapped[Optional[str]] = mapped_column(String(20))
    awarded_quotation_id: Mapped[Optional[str]] = mapped_column(String(36))
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(RFQ_STATUSES)})", name="chk_rfq_status"
        ),
        CheckConstraint("quantity > 0", name="chk_rfq_quantity"),
        CheckConstraint("target_price_cents > 0", name="chk_rfq_target_price"),
        CheckConstraint(
            "max_price_cents IS NULL OR max_price_cents >= target_price_cents",
            name="chk_rfq_max_price",
        ),
        CheckConstraint("quotations_count >= 0", name="chk_rfq_quotations_count"),
        Index("idx_rfqs_buyer", "buyer_id"),
        Index("idx_rfqs_status", "status"),
        Index("idx_rfqs_category", "category"),
        Index("idx_rfqs_expires", "expires_at"),
    )

    @property
    def target_price(self) -> Decimal:
        return from_cents(self.target_price_cents)

    @property
    def max_price(self) -> Optional[Decimal]:
        return from_cents(self.max_price_cents)
