"""
Payment schemas.

Inbound models parse the ``checkout.session`` object carried by a Stripe
webhook. Outbound models are the read DTOs for payment history and
instructor earnings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ._strict_base import StrictModel


class CheckoutSessionMetadata(BaseModel):
    """Metadata attached when the checkout session was created."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    course_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("courseId", "course_id")
    )
    student_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("studentId", "student_id")
    )
    # Informational only: the course row is authoritative for the instructor.
    instructor_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("instructorId", "instructor_id")
    )


class CheckoutSession(BaseModel):
    """The fields of a Stripe ``checkout.session`` the completion flow needs."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    payment_intent: Optional[str] = None
    amount_total: int = Field(..., ge=0, description="Amount paid in the smallest currency unit")
    currency: str = Field(..., min_length=3, max_length=3)
    payment_status: Optional[str] = None
    metadata: CheckoutSessionMetadata

    @field_validator("currency")
    @classmethod
    def _lowercase_currency(cls, value: str) -> str:
        return value.lower()

    @property
    def transaction_id(self) -> str:
        """Provider transaction id: the payment intent, else the session id."""
        return self.payment_intent or self.id


class PaymentRecordResponse(StrictModel):
    """One completed purchase, amounts in cents."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, from_attributes=True)

    id: str
    course_id: str
    course_title: Optional[str] = None
    student_id: str
    instructor_id: str
    enrollment_id: Optional[str] = None
    amount: int
    currency: str
    platform_fee: int
    instructor_payout: int
    status: str
    transaction_id: str
    created_at: datetime


class InstructorEarningsResponse(StrictModel):
    """Aggregate payouts for an instructor plus their most recent sales."""

    instructor_id: str
    total_payout: int = Field(..., description="Sum of instructor payouts in cents")
    sale_count: int
    recent_sales: List[PaymentRecordResponse] = Field(default_factory=list)


__all__ = [
    "CheckoutSession",
    "CheckoutSessionMetadata",
    "InstructorEarningsResponse",
    "PaymentRecordResponse",
]
