"""Enrollment model: a student's access grant to a course."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.course import Course


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Enrollment(Base):
    """At most one enrollment exists per (student, course)."""

    __tablename__ = "enrollments"

    __table_args__ = (
        sa.UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_enrollments_progress_range"),
        sa.Index("ix_enrollments_course_id", "course_id"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(String(26), nullable=False)
    course_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    progress: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_accessed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    course: Mapped["Course"] = relationship("Course", back_populates="enrollments")

    def __repr__(self) -> str:
        return (
            f"<Enrollment(student_id={self.student_id}, course_id={self.course_id}, "
            f"progress={self.progress})>"
        )
