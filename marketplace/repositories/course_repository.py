"""Repository for the course fields the payment flow touches."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.exceptions import RepositoryException
from marketplace.models.course import Course
from marketplace.repositories.base_repository import BaseRepository


class CourseRepository(BaseRepository[Course]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Course)

    def find_by_id(self, course_id: str) -> Optional[Course]:
        return self.get_by_id(course_id)

    def increment_enrollment_count(self, course_id: str) -> bool:
        """
        Add one to ``enrollment_count`` with a single UPDATE statement.

        The increment happens in the database under the caller's transaction, so
        concurrent completions for the same course never lose an update.
        Returns False when no course row matched.
        """
        statement = (
            update(Course)
            .where(Course.id == course_id)
            .values(enrollment_count=Course.enrollment_count + 1)
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = self.db.execute(statement)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to increment enrollment count for %s: %s", course_id, exc)
            raise RepositoryException("Failed to increment enrollment count") from exc
        return bool(result.rowcount)
