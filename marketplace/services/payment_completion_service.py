# marketplace/services/payment_completion_service.py
"""
Payment Completion Service for the course marketplace

Turns a verified ``checkout.session`` completion event into exactly one
payment record, one enrollment and one enrollment-count increment, or into
none of them.

Flow for a completion event:
1. Skip event types and unpaid sessions that do not grant access.
2. Return early when the transaction id already reached a terminal state.
3. Validate the course, the amount and the currency.
4. In one database transaction: claim the transaction id, create the
   enrollment, write the payment, increment the course counter.

Validation failures become a persisted rejection, so redeliveries of the
same transaction id are answered as duplicates. Storage failures surface as
StorageException and leave nothing behind; the delivery is not acknowledged
and the provider retries it.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import COMPLETION_EVENT_TYPES, PAID_SESSION_STATUSES
from ..core.enums import CompletionOutcome, PaymentMethod, PaymentStatus, TransactionState
from ..core.exceptions import (
    AlreadyEnrolledException,
    AmountMismatchException,
    CourseNotFoundException,
    DomainException,
    DuplicateTransactionException,
    InvalidPaymentEventException,
    RepositoryException,
    ServiceException,
    StorageException,
)
from ..core.metrics import ENROLLMENTS_CREATED_TOTAL, PAYMENT_WEBHOOK_EVENTS_TOTAL
from ..repositories.course_repository import CourseRepository
from ..repositories.payment_repository import PaymentRepository
from ..schemas.payment_schemas import CheckoutSession
from .base import BaseService
from .enrollment_service import EnrollmentService
from .fee_splitter import dollars_to_cents, split_fee
from .idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)

_REJECTABLE = (
    InvalidPaymentEventException,
    CourseNotFoundException,
    AmountMismatchException,
    AlreadyEnrolledException,
)


@dataclass(frozen=True)
class CompletionResult:
    """What happened to one delivery."""

    outcome: CompletionOutcome
    event_type: str
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    reason: Optional[str] = None


def extract_transaction_id(event: Mapping[str, Any]) -> Optional[str]:
    """
    Read the provider transaction id without validating the rest of the event.

    Used to key rejections for events whose metadata is unusable.
    """
    data = event.get("data")
    if not isinstance(data, Mapping):
        return None
    session = data.get("object")
    if not isinstance(session, Mapping):
        return None
    for key in ("payment_intent", "id"):
        value = session.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class PaymentCompletionService(BaseService):
    """Fulfils verified checkout completion events."""

    def __init__(
        self,
        db: Session,
        *,
        fee_rate: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ):
        super().__init__(db)
        self.course_repository = CourseRepository(db)
        self.payment_repository = PaymentRepository(db)
        self.enrollment_service = EnrollmentService(db)
        self.idempotency_service = IdempotencyService(db)
        self.fee_rate = fee_rate if fee_rate is not None else settings.platform_fee_rate
        self.currency = (currency or settings.stripe_currency).lower()

    @BaseService.measure_operation("handle_event")
    def handle_event(self, event: Mapping[str, Any]) -> CompletionResult:
        """
        Process one verified webhook event.

        Returns a CompletionResult for every terminal outcome (completed,
        duplicate, rejected, ignored). Raises StorageException when the store
        could not be reached or the transaction could not commit.
        """
        event_type = str(event.get("type") or "unknown")
        event_id = event.get("id") if isinstance(event.get("id"), str) else None

        if event_type not in COMPLETION_EVENT_TYPES:
            self.logger.debug("Ignoring webhook event type %s", event_type)
            return self._finish(CompletionResult(CompletionOutcome.IGNORED, event_type))

        transaction_id = extract_transaction_id(event)
        if transaction_id is None:
            self.logger.warning(
                "Completion event %s carries no transaction id; ignoring", event_id or "?"
            )
            return self._finish(
                CompletionResult(
                    CompletionOutcome.IGNORED, event_type, reason="missing transaction id"
                )
            )

        try:
            return self._finish(self._process(event, event_type, event_id, transaction_id))
        except (RepositoryException, ServiceException, SQLAlchemyError) as exc:
            self.logger.error(
                "Storage failure while processing transaction %s: %s",
                transaction_id,
                str(exc),
                extra={"transaction_id": transaction_id, "event_type": event_type},
            )
            PAYMENT_WEBHOOK_EVENTS_TOTAL.labels(event_type=event_type, outcome="storage_error").inc()
            if isinstance(exc, StorageException):
                raise
            raise StorageException() from exc

    def _process(
        self,
        event: Mapping[str, Any],
        event_type: str,
        event_id: Optional[str],
        transaction_id: str,
    ) -> CompletionResult:
        if self.idempotency_service.has_processed(transaction_id):
            return self._duplicate(event_type, transaction_id)

        try:
            session = self._parse_session(event)
            if session.payment_status is not None and (
                session.payment_status not in PAID_SESSION_STATUSES
            ):
                # Delayed payment methods complete later via async_payment_succeeded.
                self.logger.info(
                    "Checkout for %s not paid yet (payment_status=%s)",
                    transaction_id,
                    session.payment_status,
                )
                return CompletionResult(
                    CompletionOutcome.IGNORED,
                    event_type,
                    transaction_id=transaction_id,
                    reason=f"payment_status={session.payment_status}",
                )
            return self._complete(session, event_type, event_id)
        except DuplicateTransactionException:
            return self._duplicate(event_type, transaction_id)
        except _REJECTABLE as exc:
            return self._reject(exc, event_type, event_id, transaction_id)

    def _parse_session(self, event: Mapping[str, Any]) -> CheckoutSession:
        try:
            return CheckoutSession.model_validate(event["data"]["object"])
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise InvalidPaymentEventException(
                "Checkout session is missing required fields",
                details={"fields": fields},
            ) from exc

    def _complete(
        self, session: CheckoutSession, event_type: str, event_id: Optional[str]
    ) -> CompletionResult:
        transaction_id = session.transaction_id
        student_id = session.metadata.student_id
        course = self.course_repository.find_by_id(session.metadata.course_id)
        if course is None:
            raise CourseNotFoundException(session.metadata.course_id)

        expected_amount = dollars_to_cents(course.price)
        if session.amount_total != expected_amount or session.currency != self.currency:
            raise AmountMismatchException(
                expected_amount=expected_amount,
                received_amount=session.amount_total,
                expected_currency=self.currency,
                received_currency=session.currency,
            )

        split = split_fee(session.amount_total, self.fee_rate)
        self.logger.info(
            "Transaction %s: %s -> %s",
            transaction_id,
            TransactionState.UNSEEN.value,
            TransactionState.PROCESSING.value,
        )

        with self.transaction():
            ledger_entry = self.idempotency_service.mark_processed(
                transaction_id, event_type=event_type, event_id=event_id
            )
            enrollment = self.enrollment_service.try_create(student_id, course.id)
            payment = self.payment_repository.insert(
                student_id=student_id,
                course_id=course.id,
                instructor_id=course.instructor_id,
                enrollment_id=enrollment.id,
                amount=session.amount_total,
                currency=session.currency,
                payment_method=PaymentMethod.STRIPE.value,
                transaction_id=transaction_id,
                status=PaymentStatus.COMPLETED.value,
                platform_fee=split.platform_fee,
                instructor_payout=split.instructor_payout,
            )
            if not self.course_repository.increment_enrollment_count(course.id):
                raise CourseNotFoundException(course.id)
            ledger_entry.payment_id = payment.id

        ENROLLMENTS_CREATED_TOTAL.inc()
        self.logger.info(
            "Transaction %s: %s -> %s (payment %s, enrollment %s, fee %d, payout %d)",
            transaction_id,
            TransactionState.PROCESSING.value,
            TransactionState.COMPLETED.value,
            payment.id,
            enrollment.id,
            split.platform_fee,
            split.instructor_payout,
        )
        return CompletionResult(
            CompletionOutcome.COMPLETED,
            event_type,
            transaction_id=transaction_id,
            payment_id=payment.id,
            enrollment_id=enrollment.id,
        )

    def _reject(
        self,
        exc: DomainException,
        event_type: str,
        event_id: Optional[str],
        transaction_id: str,
    ) -> CompletionResult:
        log = self.logger.error if isinstance(exc, AmountMismatchException) else self.logger.warning
        log(
            "Transaction %s rejected (%s): %s",
            transaction_id,
            exc.code,
            exc.message,
            extra={"transaction_id": transaction_id, "details": exc.details},
        )
        recorded = self.idempotency_service.mark_rejected(
            transaction_id,
            event_type=event_type,
            event_id=event_id,
            code=exc.code,
            reason=exc.message,
        )
        if not recorded:
            # A concurrent delivery reached a terminal state first.
            return self._duplicate(event_type, transaction_id)
        return CompletionResult(
            CompletionOutcome.REJECTED,
            event_type,
            transaction_id=transaction_id,
            reason=exc.code,
        )

    def _duplicate(self, event_type: str, transaction_id: str) -> CompletionResult:
        self.logger.info("Transaction %s already processed; skipping", transaction_id)
        return CompletionResult(
            CompletionOutcome.DUPLICATE, event_type, transaction_id=transaction_id
        )

    @staticmethod
    def _finish(result: CompletionResult) -> CompletionResult:
        PAYMENT_WEBHOOK_EVENTS_TOTAL.labels(
            event_type=result.event_type, outcome=result.outcome.value
        ).inc()
        return result


__all__ = ["CompletionResult", "PaymentCompletionService", "extract_transaction_id"]
