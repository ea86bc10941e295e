from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from marketplace.constants import QUOTATION_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import from_cents, new_id, utcnow


class Quotation(Base):
    __tablename__ = "quotations"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    rfq_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rfqs.id"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("suppliers.id"), nullable=False
    )
    quoted_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    moq: Mapped[int] = mapped_column(Integer, nullable=False)
    total_value_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    lead_time: Mapped[Optional[str]] = mapped_column(String(100))
    payment_terms: Mapped[Optional[str]] = mapped_column(String(200))
    shipping_terms: Mapped[Optional[str]] = mapped_column(String(100))
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_guarantee: Mapped[bool] = mapped_column(Boolean, default=False)
    sample_available: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="pending_review")
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(QUOTATION_STATUSES)})",
            name="chk_quotation_status",
        ),
        CheckConstraint("quoted_price_cents > 0", name="chk_quotation_price"),
        CheckConstraint("moq > 0", name="chk_quotation_moq"),
        CheckConstraint("validity_days > 0", name="chk_quotation_validity"),
        CheckConstraint(
            "total_value_cents = quoted_price_cents * moq",
            name="chk_quotation_total_value",
        ),
        Index("idx_quotations_rfq", "rfq_id"),
        Index("idx_quotations_supplier", "supplier_id"),
        Index("idx_quotations_status", "status"),
        # One live quotation per supplier per RFQ; a rejected one may be replaced
        Index(
            "uq_quotations_active_supplier",
            "rfq_id",
            "supplier_id",
            unique=True,
            sqlite_where=text("status != 'rejected'"),
            postgresql_where=text("status != 'rejected'"),
        ),
    )

    @validates("quoted_price_cents", "moq")
    def _recompute_total(self, key, value):
        price = value if key == "quoted_price_cents" else self.quoted_price_cents
        moq = value if key == "moq" else self.moq
        if price is not None and moq is not None:
            self.total_value_cents = price * moq
        return value

    @property
    def quoted_price(self) -> Decimal:
        return from_cents(self.quoted_price_cents)

    @property
    def total_value(self) -> Decimal:
        return from_cents(self.total_value_cents)
