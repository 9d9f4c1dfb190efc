"""Service layer: business logic and transaction boundaries."""

from .base import BaseService
from .enrollment_service import EnrollmentService
from .idempotency_service import IdempotencyService
from .payment_completion_service import CompletionResult, PaymentCompletionService
from .payment_history_service import PaymentHistoryService
from .webhook_signature_service import WebhookSignatureVerifier

__all__ = [
    "BaseService",
    "CompletionResult",
    "EnrollmentService",
    "IdempotencyService",
    "PaymentCompletionService",
    "PaymentHistoryService",
    "WebhookSignatureVerifier",
]
