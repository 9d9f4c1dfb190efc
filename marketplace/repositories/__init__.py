"""Repository layer: data access only, transactions are owned by services."""

from .base_repository import BaseRepository
from .course_repository import CourseRepository
from .enrollment_repository import EnrollmentRepository
from .payment_repository import PaymentRepository
from .processed_transaction_repository import ProcessedTransactionRepository

__all__ = [
    "BaseRepository",
    "CourseRepository",
    "EnrollmentRepository",
    "PaymentRepository",
    "ProcessedTransactionRepository",
]
