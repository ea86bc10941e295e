from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.constants import SAMPLE_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import new_id, utcnow


class SampleRequest(Base):
    __tablename__ = "sample_requests"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    rfq_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rfqs.id"), nullable=False
    )
    quotation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quotations.id"), nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("suppliers.id"), nullable=False
    )
    delivery_address: Mapped[Optional[str]] = mapped_column(Text)
    courier_service: Mapped[Optional[str]] = mapped_column(String(100))
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(30), default="requested")
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(SAMPLE_STATUSES)})", name="chk_sample_status"
        ),
        Index("idx_samples_quotation", "quotation_id"),
        Index("idx_samples_buyer", "buyer_id"),
        Index("idx_samples_supplier", "supplier_id"),
    )
