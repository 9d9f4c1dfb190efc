# marketplace/routes/v1/payments.py
"""
Payment routes - API v1

Versioned payment endpoints under /api/v1/payments.

Endpoints:
    POST /webhook                        → Stripe checkout webhook
    GET /students/{student_id}           → Student payment history
    GET /instructors/{instructor_id}/earnings → Instructor earnings summary
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session, sessionmaker

from ...core.config import settings
from ...core.constants import DEFAULT_QUERY_LIMIT, RECENT_SALES_LIMIT, STRIPE_SIGNATURE_HEADER
from ...core.exceptions import (
    AuthenticationException,
    InvalidPaymentEventException,
    ServiceException,
    StorageException,
)
from ...core.metrics import PAYMENT_WEBHOOK_AUTH_FAILURES_TOTAL
from ...database import get_db, get_session_factory, session_scope
from ...schemas.payment_schemas import InstructorEarningsResponse, PaymentRecordResponse
from ...schemas.webhook_responses import WebhookReceivedResponse
from ...services.payment_completion_service import CompletionResult, PaymentCompletionService
from ...services.payment_history_service import PaymentHistoryService
from ...services.webhook_signature_service import WebhookSignatureVerifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


def get_signature_verifier() -> WebhookSignatureVerifier:
    return WebhookSignatureVerifier.from_settings()


def get_payment_history_service(db: Session = Depends(get_db)) -> PaymentHistoryService:
    return PaymentHistoryService(db)


def _process_event(factory: sessionmaker, event: Dict[str, Any]) -> CompletionResult:
    with session_scope(factory) as db:
        return PaymentCompletionService(db).handle_event(event)


@router.post("/webhook", response_model=WebhookReceivedResponse)
async def handle_stripe_webhook(
    request: Request,
    verifier: WebhookSignatureVerifier = Depends(get_signature_verifier),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> WebhookReceivedResponse:
    """
    Handle Stripe checkout webhooks.

    Answers 200 once the delivery reached a terminal outcome (completed,
    duplicate, rejected or ignored), 400 when the signature cannot be
    verified, and 503 when storage failed or processing ran out of time so
    Stripe redelivers.

    Note:
        This endpoint has no authentication as it uses webhook signature verification
    """
    payload = await request.body()
    sig_header = request.headers.get(STRIPE_SIGNATURE_HEADER)

    try:
        event = verifier.verify(payload, sig_header)
    except AuthenticationException as e:
        PAYMENT_WEBHOOK_AUTH_FAILURES_TOTAL.inc()
        raise e.to_http_exception()
    except (InvalidPaymentEventException, ServiceException) as e:
        raise e.to_http_exception()

    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(_process_event, session_factory, event),
            timeout=settings.webhook_processing_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            "Webhook processing exceeded %.1fs for event %s",
            settings.webhook_processing_timeout_seconds,
            event.get("id"),
        )
        raise StorageException("Webhook processing timed out").to_http_exception()
    except StorageException as e:
        raise e.to_http_exception()

    logger.info(
        "Webhook %s handled: %s",
        result.event_type,
        result.outcome.value,
        extra={"event": "payment_webhook", "transaction_id": result.transaction_id},
    )
    return WebhookReceivedResponse(received=True)


@router.get("/students/{student_id}", response_model=List[PaymentRecordResponse])
def list_student_payments(
    student_id: str,
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=DEFAULT_QUERY_LIMIT),
    service: PaymentHistoryService = Depends(get_payment_history_service),
) -> List[PaymentRecordResponse]:
    """Payments made by a student, newest first."""
    return service.list_for_student(student_id, limit=limit)


@router.get(
    "/instructors/{instructor_id}/earnings", response_model=InstructorEarningsResponse
)
def get_instructor_earnings(
    instructor_id: str,
    recent_limit: int = Query(RECENT_SALES_LIMIT, ge=0, le=DEFAULT_QUERY_LIMIT),
    service: PaymentHistoryService = Depends(get_payment_history_service),
) -> InstructorEarningsResponse:
    """Total instructor payout over completed sales plus the most recent sales."""
    return service.get_instructor_earnings(instructor_id, recent_limit=recent_limit)


__all__ = ["router", "get_signature_verifier"]
