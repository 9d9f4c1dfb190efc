"""
Course model.

Courses are authored and managed by the content service. The payment flow only
reads price and instructor and increments ``enrollment_count``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List

import sqlalchemy as sa
from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.enrollment import Enrollment


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Course(Base):
    __tablename__ = "courses"

    __table_args__ = (
        sa.CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
        sa.CheckConstraint("enrollment_count >= 0", name="ck_courses_enrollment_count_non_negative"),
        sa.Index("ix_courses_instructor_id", "instructor_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00"), comment="Price in dollars"
    )
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    instructor_id: Mapped[str] = mapped_column(String(26), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    enrollments: Mapped[List["Enrollment"]] = relationship("Enrollment", back_populates="course")

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, price={self.price}, enrollments={self.enrollment_count})>"
