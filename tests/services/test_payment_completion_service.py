from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from marketplace.core.constants import CHECKOUT_ASYNC_SUCCEEDED_EVENT
from marketplace.core.enums import CompletionOutcome, PaymentStatus, TransactionState
from marketplace.core.exceptions import RepositoryException, StorageException
from marketplace.core.metrics import REGISTRY
from marketplace.core.ulid_helper import generate_ulid
from marketplace.models.course import Course
from marketplace.models.enrollment import Enrollment
from marketplace.models.payment import Payment
from marketplace.models.processed_transaction import ProcessedTransaction
from marketplace.repositories.course_repository import CourseRepository
from marketplace.services.payment_completion_service import (
    PaymentCompletionService,
    extract_transaction_id,
)


@pytest.fixture
def service(db) -> PaymentCompletionService:
    return PaymentCompletionService(db, fee_rate=Decimal("0.15"), currency="usd")


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _enrollment_count(db, course_id: str) -> int:
    return db.execute(select(Course.enrollment_count).where(Course.id == course_id)).scalar_one()


def _metric(outcome: str, event_type: str = "checkout.session.completed") -> float:
    value = REGISTRY.get_sample_value(
        "payment_webhook_events_total", {"event_type": event_type, "outcome": outcome}
    )
    return value or 0.0


def test_fresh_completion_creates_payment_and_enrollment(db, service, course, checkout_event):
    student_id = generate_ulid()
    event = checkout_event(course_id=course.id, student_id=student_id, payment_intent="pi_fresh")
    completed_before = _metric("completed")

    result = service.handle_event(event)

    assert result.outcome is CompletionOutcome.COMPLETED
    assert result.transaction_id == "pi_fresh"

    payment = db.execute(select(Payment)).scalar_one()
    assert payment.id == result.payment_id
    assert payment.amount == 10000
    assert payment.platform_fee == 1500
    assert payment.instructor_payout == 8500
    assert payment.platform_fee + payment.instructor_payout == payment.amount
    assert payment.status == PaymentStatus.COMPLETED.value
    assert payment.instructor_id == course.instructor_id
    assert payment.enrollment_id == result.enrollment_id

    enrollment = db.execute(select(Enrollment)).scalar_one()
    assert enrollment.student_id == student_id
    assert enrollment.progress == 0
    assert enrollment.completed_at is None

    assert _enrollment_count(db, course.id) == 1

    ledger = db.execute(select(ProcessedTransaction)).scalar_one()
    assert ledger.transaction_id == "pi_fresh"
    assert ledger.status == TransactionState.COMPLETED.value
    assert ledger.payment_id == payment.id
    assert _metric("completed") == completed_before + 1


def test_redelivery_is_a_duplicate_without_side_effects(db, service, course, checkout_event):
    event = checkout_event(course_id=course.id, payment_intent="pi_redelivered")
    assert service.handle_event(event).outcome is CompletionOutcome.COMPLETED

    again = service.handle_event(event)

    assert again.outcome is CompletionOutcome.DUPLICATE
    assert _count(db, Payment) == 1
    assert _count(db, Enrollment) == 1
    assert _enrollment_count(db, course.id) == 1


def test_session_id_is_used_when_payment_intent_is_absent(db, service, course, checkout_event):
    event = checkout_event(course_id=course.id)
    event["data"]["object"]["payment_intent"] = None

    result = service.handle_event(event)

    assert result.outcome is CompletionOutcome.COMPLETED
    assert result.transaction_id == event["data"]["object"]["id"]


def test_snake_case_metadata_is_accepted(service, course, checkout_event):
    student_id = generate_ulid()
    event = checkout_event(
        course_id=course.id, metadata={"course_id": course.id, "student_id": student_id}
    )

    assert service.handle_event(event).outcome is CompletionOutcome.COMPLETED


def test_async_payment_succeeded_completes(service, course, checkout_event):
    event = checkout_event(course_id=course.id, event_type=CHECKOUT_ASYNC_SUCCEEDED_EVENT)

    assert service.handle_event(event).outcome is CompletionOutcome.COMPLETED


def test_unpaid_session_is_ignored_and_not_recorded(db, service, course, checkout_event):
    event = checkout_event(course_id=course.id, payment_status="unpaid")

    result = service.handle_event(event)

    assert result.outcome is CompletionOutcome.IGNORED
    assert _count(db, ProcessedTransaction) == 0

    # The delayed payment later succeeds under the same transaction id.
    event["type"] = CHECKOUT_ASYNC_SUCCEEDED_EVENT
    event["data"]["object"]["payment_status"] = "paid"
    assert service.handle_event(event).outcome is CompletionOutcome.COMPLETED


def test_unrelated_event_type_is_ignored(db, service):
    result = service.handle_event({"id": "evt_1", "type": "customer.created", "data": {}})

    assert result.outcome is CompletionOutcome.IGNORED
    assert _count(db, ProcessedTransaction) == 0


def test_amount_mismatch_is_rejected_and_recorded(db, service, make_course, checkout_event):
    course = make_course(price=Decimal("120.00"))
    event = checkout_event(course_id=course.id, amount=10000, payment_intent="pi_stale_price")

    result = service.handle_event(event)

    assert result.outcome is CompletionOutcome.REJECTED
    assert result.reason == "AMOUNT_MISMATCH"
    assert _count(db, Payment) == 0
    assert _count(db, Enrollment) == 0
    assert _enrollment_count(db, course.id) == 0

    ledger = db.execute(select(ProcessedTransaction)).scalar_one()
    assert ledger.status == TransactionState.REJECTED.value
    assert ledger.rejection_code == "AMOUNT_MISMATCH"

    assert service.handle_event(event).outcome is CompletionOutcome.DUPLICATE


def test_currency_mismatch_is_rejected(db, service, course, checkout_event):
    result = service.handle_event(checkout_event(course_id=course.id, currency="EUR"))

    assert result.outcome is CompletionOutcome.REJECTED
    assert result.reason == "AMOUNT_MISMATCH"
    assert _count(db, Payment) == 0


def test_unknown_course_is_rejected(db, service, checkout_event):
    result = service.handle_event(checkout_event(course_id=generate_ulid()))

    assert result.outcome is CompletionOutcome.REJECTED
    assert result.reason == "COURSE_NOT_FOUND"
    assert _count(db, Payment) == 0
    assert _count(db, Enrollment) == 0


def test_already_enrolled_student_is_rejected(db, service, course, checkout_event):
    student_id = generate_ulid()
    first = service.handle_event(checkout_event(course_id=course.id, student_id=student_id))
    assert first.outcome is CompletionOutcome.COMPLETED

    second = service.handle_event(checkout_event(course_id=course.id, student_id=student_id))

    assert second.outcome is CompletionOutcome.REJECTED
    assert second.reason == "ALREADY_ENROLLED"
    assert _count(db, Payment) == 1
    assert _count(db, Enrollment) == 1
    assert _enrollment_count(db, course.id) == 1
    # The claim taken inside the failed transaction was rolled back with it.
    statuses = db.execute(
        select(ProcessedTransaction.status).where(
            ProcessedTransaction.transaction_id == second.transaction_id
        )
    ).scalars().all()
    assert statuses == [TransactionState.REJECTED.value]


def test_missing_metadata_is_rejected(db, service, course, checkout_event):
    event = checkout_event(course_id=course.id, metadata={"courseId": course.id})

    result = service.handle_event(event)

    assert result.outcome is CompletionOutcome.REJECTED
    assert result.reason == "INVALID_PAYMENT_EVENT"
    assert _count(db, Payment) == 0


def test_missing_amount_is_rejected(service, course, checkout_event):
    result = service.handle_event(checkout_event(course_id=course.id, amount=None))

    assert result.outcome is CompletionOutcome.REJECTED
    assert result.reason == "INVALID_PAYMENT_EVENT"


def test_storage_failure_raises_and_leaves_no_rows(checkout_event):
    # Tables were never created, so every statement fails.
    broken = create_engine("sqlite+pysqlite:///:memory:")
    session = sessionmaker(bind=broken)()
    try:
        service = PaymentCompletionService(session, fee_rate=Decimal("0.15"), currency="usd")
        with pytest.raises(StorageException):
            service.handle_event(checkout_event(course_id=generate_ulid()))
    finally:
        session.close()
        broken.dispose()


def test_failure_after_claim_rolls_back_everything_and_redelivery_completes(
    db, service, course, checkout_event, monkeypatch
):
    def _lost_connection(self, course_id):
        raise RepositoryException("connection lost during counter update")

    monkeypatch.setattr(CourseRepository, "increment_enrollment_count", _lost_connection)
    event = checkout_event(course_id=course.id, payment_intent="pi_interrupted")

    with pytest.raises(StorageException):
        service.handle_event(event)

    assert _count(db, Payment) == 0
    assert _count(db, Enrollment) == 0
    assert _count(db, ProcessedTransaction) == 0
    assert _enrollment_count(db, course.id) == 0

    monkeypatch.undo()
    retried = service.handle_event(event)

    assert retried.outcome is CompletionOutcome.COMPLETED
    assert _count(db, Payment) == 1
    assert _count(db, Enrollment) == 1
    assert _enrollment_count(db, course.id) == 1


def test_extract_transaction_id_prefers_payment_intent():
    event = {"data": {"object": {"id": "cs_1", "payment_intent": "pi_1"}}}

    assert extract_transaction_id(event) == "pi_1"
    assert extract_transaction_id({"data": {"object": {"id": "cs_1"}}}) == "cs_1"
    assert extract_transaction_id({"data": None}) is None
    assert extract_transaction_id({}) is None
