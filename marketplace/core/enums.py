# marketplace/core/enums.py
"""
Core enums for the course marketplace.

Stored as plain strings in the database; the enums keep the allowed values
in one place.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Lifecycle of a payment record. Only COMPLETED is written by webhooks."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    STRIPE = "stripe"


class TransactionState(str, Enum):
    """
    Processing state of a provider transaction id.

    UNSEEN and PROCESSING are never persisted: a key without a ledger row is
    unseen, and processing only exists inside the completing transaction.
    """

    UNSEEN = "unseen"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class CompletionOutcome(str, Enum):
    """Result of handling one verified webhook delivery."""

    COMPLETED = "completed"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    IGNORED = "ignored"
