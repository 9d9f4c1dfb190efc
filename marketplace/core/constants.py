"""Application-wide constants for the course marketplace."""

from __future__ import annotations

BRAND_NAME = "Coursemarket"

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Payment completion and enrollment backend for the course marketplace"

# Stripe event types that mean the buyer has paid for a checkout session.
CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"
CHECKOUT_ASYNC_SUCCEEDED_EVENT = "checkout.session.async_payment_succeeded"
COMPLETION_EVENT_TYPES = frozenset({CHECKOUT_COMPLETED_EVENT, CHECKOUT_ASYNC_SUCCEEDED_EVENT})

# checkout.session.payment_status values that allow fulfilment
PAID_SESSION_STATUSES = frozenset({"paid", "no_payment_required"})

STRIPE_SIGNATURE_HEADER = "stripe-signature"

# Enrollment progress bounds (percent)
MIN_PROGRESS = 0
MAX_PROGRESS = 100

# Query limits
DEFAULT_QUERY_LIMIT = 100
RECENT_SALES_LIMIT = 20
