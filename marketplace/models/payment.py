"""
Payment model for Stripe checkout completions.

Money columns hold integer cents. A payment row is written once per provider
transaction id and never updated by the webhook flow.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from marketplace.core.enums import PaymentMethod, PaymentStatus
from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.course import Course
    from marketplace.models.enrollment import Enrollment


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    __tablename__ = "payments"

    __table_args__ = (
        sa.UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
        sa.CheckConstraint(
            "platform_fee + instructor_payout = amount", name="ck_payments_fee_split_sum"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        sa.Index("ix_payments_student_id", "student_id"),
        sa.Index("ix_payments_instructor_id_status", "instructor_id", "status"),
        sa.Index("ix_payments_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id: Mapped[str] = mapped_column(String(26), nullable=False)
    course_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False
    )
    instructor_id: Mapped[str] = mapped_column(String(26), nullable=False)
    enrollment_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.STRIPE.value
    )
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False, comment="Platform fee in cents")
    instructor_payout: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Instructor payout in cents"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    course: Mapped["Course"] = relationship("Course")
    enrollment: Mapped[Optional["Enrollment"]] = relationship("Enrollment")

    @property
    def course_title(self) -> Optional[str]:
        return self.course.title if self.course is not None else None

    def __repr__(self) -> str:
        return (
            f"<Payment(transaction_id={self.transaction_id}, amount={self.amount}, "
            f"status={self.status})>"
        )
