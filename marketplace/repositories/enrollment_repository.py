"""Repository for enrollment records."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace.models.enrollment import Enrollment
from marketplace.repositories.base_repository import BaseRepository


class EnrollmentRepository(BaseRepository[Enrollment]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Enrollment)

    def find_by_student_and_course(self, student_id: str, course_id: str) -> Optional[Enrollment]:
        return self.find_one_by(student_id=student_id, course_id=course_id)

    def insert(self, *, student_id: str, course_id: str) -> Enrollment:
        """Insert a fresh enrollment: zero progress, never accessed, not completed."""
        return self.create(
            student_id=student_id,
            course_id=course_id,
            progress=0,
            completed_at=None,
            last_accessed_at=None,
        )

    def list_for_student(self, student_id: str) -> List[Enrollment]:
        """Most recently accessed first; never-opened enrollments last, newest first."""
        query = (
            self._build_query()
            .filter(Enrollment.student_id == student_id)
            .order_by(
                Enrollment.last_accessed_at.desc().nulls_last(),
                Enrollment.created_at.desc(),
            )
        )
        return self._execute_query(query)
