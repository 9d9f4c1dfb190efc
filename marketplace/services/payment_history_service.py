"""Read-side queries over completed payments."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace.core.constants import DEFAULT_QUERY_LIMIT, RECENT_SALES_LIMIT
from marketplace.repositories.payment_repository import PaymentRepository
from marketplace.schemas.payment_schemas import (
    InstructorEarningsResponse,
    PaymentRecordResponse,
)
from marketplace.services.base import BaseService


class PaymentHistoryService(BaseService):
    def __init__(self, db: Session, repository: Optional[PaymentRepository] = None) -> None:
        super().__init__(db)
        self.repository = repository or PaymentRepository(db)

    def list_for_student(
        self, student_id: str, *, limit: int = DEFAULT_QUERY_LIMIT
    ) -> List[PaymentRecordResponse]:
        payments = self.repository.list_for_student(student_id, limit=limit)
        return [PaymentRecordResponse.model_validate(payment) for payment in payments]

    @BaseService.measure_operation("get_instructor_earnings")
    def get_instructor_earnings(
        self, instructor_id: str, *, recent_limit: int = RECENT_SALES_LIMIT
    ) -> InstructorEarningsResponse:
        """Total payout and sale count over completed payments, plus the latest sales."""
        total_payout, sale_count = self.repository.summarize_instructor_earnings(instructor_id)
        recent = self.repository.list_recent_for_instructor(instructor_id, limit=recent_limit)
        return InstructorEarningsResponse(
            instructor_id=instructor_id,
            total_payout=total_payout,
            sale_count=sale_count,
            recent_sales=[PaymentRecordResponse.model_validate(payment) for payment in recent],
        )
