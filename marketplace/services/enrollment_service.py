# marketplace/services/enrollment_service.py
"""
Enrollment Service for the course marketplace

Creates enrollments for completed payments and tracks a student's progress
through a course. At most one enrollment exists per (student, course); the
unique constraint on the table is what enforces it under concurrency.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import MAX_PROGRESS, MIN_PROGRESS
from ..core.exceptions import (
    AlreadyEnrolledException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.enrollment import Enrollment
from ..repositories.enrollment_repository import EnrollmentRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class EnrollmentService(BaseService):
    """Service layer for enrollment records."""

    def __init__(self, db: Session, repository: Optional[EnrollmentRepository] = None):
        super().__init__(db)
        self.repository = repository or EnrollmentRepository(db)

    def try_create(self, student_id: str, course_id: str) -> Enrollment:
        """
        Insert a new enrollment inside the caller's transaction.

        Does NOT commit. Raises AlreadyEnrolledException when the pair already
        exists, including when a concurrent insert wins the unique constraint.
        """
        if self.repository.find_by_student_and_course(student_id, course_id) is not None:
            raise AlreadyEnrolledException(student_id, course_id)

        try:
            enrollment = self.repository.insert(student_id=student_id, course_id=course_id)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise AlreadyEnrolledException(student_id, course_id) from exc
            raise

        self.logger.info(
            "Enrollment %s created for student %s in course %s",
            enrollment.id,
            student_id,
            course_id,
        )
        return enrollment

    def get_enrollment(self, student_id: str, course_id: str) -> Enrollment:
        enrollment = self.repository.find_by_student_and_course(student_id, course_id)
        if enrollment is None:
            raise NotFoundException(
                f"Student {student_id} is not enrolled in course {course_id}",
                code="ENROLLMENT_NOT_FOUND",
                details={"student_id": student_id, "course_id": course_id},
            )
        return enrollment

    def list_for_student(self, student_id: str) -> List[Enrollment]:
        return self.repository.list_for_student(student_id)

    @BaseService.measure_operation("update_progress")
    def update_progress(
        self,
        student_id: str,
        course_id: str,
        progress: Union[Decimal, int, float, str],
        *,
        now: Optional[datetime] = None,
    ) -> Enrollment:
        """
        Record the student's progress (0-100) and touch ``last_accessed_at``.

        ``completed_at`` is set the first time progress reaches 100 and is never
        cleared afterwards.
        """
        try:
            value = Decimal(str(progress))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationException(
                f"Progress must be a number, got {progress!r}", code="INVALID_PROGRESS"
            ) from exc

        if not value.is_finite() or value < MIN_PROGRESS or value > MAX_PROGRESS:
            raise ValidationException(
                f"Progress must be between {MIN_PROGRESS} and {MAX_PROGRESS}",
                code="INVALID_PROGRESS",
                details={"progress": str(progress)},
            )

        timestamp = now or datetime.now(timezone.utc)
        with self.transaction():
            enrollment = self.get_enrollment(student_id, course_id)
            enrollment.progress = value.quantize(Decimal("0.01"))
            enrollment.last_accessed_at = timestamp
            if value >= MAX_PROGRESS and enrollment.completed_at is None:
                enrollment.completed_at = timestamp
                self.logger.info("Student %s completed course %s", student_id, course_id)
            self.repository.flush()

        return enrollment
