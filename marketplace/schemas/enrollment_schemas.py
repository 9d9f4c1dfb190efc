"""Enrollment request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel


class EnrollmentResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True, from_attributes=True)

    id: str
    student_id: str
    course_id: str
    progress: Decimal
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    created_at: datetime


class ProgressUpdateRequest(StrictModel):
    """Progress is a percentage; range checks happen in the service."""

    student_id: str = Field(..., min_length=1)
    progress: Decimal


__all__ = ["EnrollmentResponse", "ProgressUpdateRequest"]
