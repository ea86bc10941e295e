from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    JSON,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.constants import VERIFICATION_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import utcnow


class Supplier(Base):
    """Supplier profile. ``id`` is the owning supplier user's id."""

    __tablename__ = "suppliers"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False
    )
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    country: Mapped[Optional[str]] = mapped_column(String(100))
    product_categories: Mapped[list] = mapped_column(JSON, default=list)
    certifications: Mapped[list] = mapped_column(JSON, default=list)
    years_in_business: Mapped[int] = mapped_column(Integer, default=0)
    verification_status: Mapped[str] = mapped_column(String(20), default="pending")
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("years_in_business >= 0", name="chk_supplier_years"),
        CheckConstraint(
            f"verification_status IN ({sql_in_list(VERIFICATION_STATUSES)})",
            name="chk_supplier_verification",
        ),
        Index("idx_suppliers_status", "verification_status"),
    )
