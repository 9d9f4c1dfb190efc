"""SQLAlchemy models. Importing this package registers every table on ``Base.metadata``."""

from marketplace.models.course import Course
from marketplace.models.enrollment import Enrollment
from marketplace.models.payment import Payment
from marketplace.models.processed_transaction import ProcessedTransaction

__all__ = ["Course", "Enrollment", "Payment", "ProcessedTransaction"]
