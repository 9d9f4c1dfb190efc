# marketplace/repositories/payment_repository.py
"""
Payment Repository for the course marketplace

Data access for payment records written by the checkout webhook, plus the
read queries behind student payment history and instructor earnings.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from marketplace.core.enums import PaymentStatus
from marketplace.core.exceptions import RepositoryException
from marketplace.models.payment import Payment
from marketplace.repositories.base_repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Payment)

    def insert(self, **fields) -> Payment:
        return self.create(**fields)

    def find_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        return self.find_one_by(transaction_id=transaction_id)

    def list_for_student(self, student_id: str, *, limit: int = 100) -> List[Payment]:
        """Return a student's payments, newest first."""
        query = (
            self._build_query()
            .options(joinedload(Payment.course))
            .filter(Payment.student_id == student_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def summarize_instructor_earnings(self, instructor_id: str) -> Tuple[int, int]:
        """
        Return (total payout cents, sale count) over completed payments.

        Returns (0, 0) when the instructor has no completed sales.
        """
        try:
            row = (
                self.db.query(
                    func.coalesce(func.sum(Payment.instructor_payout), 0),
                    func.count(Payment.id),
                )
                .filter(
                    Payment.instructor_id == instructor_id,
                    Payment.status == PaymentStatus.COMPLETED.value,
                )
                .one()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to summarize earnings for %s: %s", instructor_id, str(exc))
            raise RepositoryException("Failed to summarize instructor earnings") from exc
        return int(row[0] or 0), int(row[1] or 0)

    def list_recent_for_instructor(self, instructor_id: str, *, limit: int = 20) -> List[Payment]:
        query = (
            self._build_query()
            .options(joinedload(Payment.course))
            .filter(Payment.instructor_id == instructor_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)
