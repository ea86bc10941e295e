from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Boolean,
    Integer,
    DateTime,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.constants import USER_TYPES, VERIFICATION_STATUSES, sql_in_list
from marketplace.database import Base
from marketplace.utils import new_id, utcnow


class User(Base):
    __tablename__ = "users"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[Optional[str]] = mapped_column(String(200))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)
    profile_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_status: Mapped[str] = mapped_column(String(20), default="pending")
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            f"user_type IN ({sql_in_list(USER_TYPES)})", name="chk_user_type"
        ),
        CheckConstraint(
            f"verification_status IN ({sql_in_list(VERIFICATION_STATUSES)})",
            name="chk_user_verification",
        ),
        Index("idx_users_email", "email"),
        Index("idx_users_type", "user_type"),
    )
