# marketplace/routes/v1/enrollments.py
"""
Enrollment routes - API v1

Endpoints:
    GET /students/{student_id}        → Courses a student is enrolled in
    PATCH /{course_id}/progress       → Record progress through a course
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.exceptions import DomainException
from ...database import get_db
from ...schemas.enrollment_schemas import EnrollmentResponse, ProgressUpdateRequest
from ...services.enrollment_service import EnrollmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["enrollments-v1"])


def get_enrollment_service(db: Session = Depends(get_db)) -> EnrollmentService:
    return EnrollmentService(db)


@router.get("/students/{student_id}", response_model=List[EnrollmentResponse])
def list_student_enrollments(
    student_id: str,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> List[EnrollmentResponse]:
    return [EnrollmentResponse.model_validate(e) for e in service.list_for_student(student_id)]


@router.patch("/{course_id}/progress", response_model=EnrollmentResponse)
def update_enrollment_progress(
    course_id: str,
    body: ProgressUpdateRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
) -> EnrollmentResponse:
    try:
        enrollment = service.update_progress(body.student_id, course_id, body.progress)
    except DomainException as e:
        raise e.to_http_exception()
    return EnrollmentResponse.model_validate(enrollment)
