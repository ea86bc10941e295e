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

from marketplace.constants import QUESTION_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import new_id, utcnow


class SupplierQuestion(Base):
    """A supplier's clarifying question on an RFQ, moderated before the buyer sees it."""

    __tablename__ = "rfq_questions"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    rfq_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rfqs.id"), nullable=False
    )
    supplier_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("suppliers.id"), nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="pending_admin")
    admin_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    buyer_answer: Mapped[Optional[str]] = mapped_column(Text)
    buyer_answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(QUESTION_STATUSES)})", name="chk_question_status"
        ),
        Index("idx_questions_rfq", "rfq_id"),
        Index("idx_questions_supplier", "supplier_id"),
        Index("idx_questions_status", "status"),
    )

    @property
    def visible_to_all(self) -> bool:
        return self.status == "published"
