# marketplace/services/webhook_signature_service.py
"""
Stripe webhook signature verification.

Checks the ``Stripe-Signature`` header against every configured endpoint
secret (local CLI secret first, then the deployed one) and returns the
decoded event. Nothing here touches the database, so a forged delivery is
turned away before any storage access.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence

import stripe

from ..core.config import settings
from ..core.exceptions import (
    AuthenticationException,
    InvalidPaymentEventException,
    ServiceException,
)

logger = logging.getLogger(__name__)


class WebhookSignatureVerifier:
    """Verifies signed webhook payloads against a list of shared secrets."""

    def __init__(self, secrets: Sequence[str], *, tolerance_seconds: int = 300) -> None:
        self.secrets = [secret for secret in secrets if secret]
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def from_settings(cls) -> "WebhookSignatureVerifier":
        return cls(
            settings.webhook_secrets,
            tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        )

    def verify(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Authenticate ``payload`` and return the parsed event.

        Raises:
            AuthenticationException: header missing, signature wrong, or
                timestamp outside the tolerance window. The message does not
                say which.
            InvalidPaymentEventException: authentic payload that is not a JSON
                object.
            ServiceException: no webhook secret is configured.
        """
        if not signature_header:
            logger.warning("Webhook received without signature")
            raise AuthenticationException()

        if not self.secrets:
            logger.error("No webhook secrets configured")
            raise ServiceException("Webhook configuration error", code="WEBHOOK_NOT_CONFIGURED")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AuthenticationException() from exc

        verified_with: Optional[int] = None
        for index, secret in enumerate(self.secrets):
            try:
                stripe.WebhookSignature.verify_header(
                    text, signature_header, secret, self.tolerance_seconds
                )
            except stripe.SignatureVerificationError:
                continue
            verified_with = index
            break

        if verified_with is None:
            logger.warning(
                "Webhook signature verification failed with all %d configured secrets",
                len(self.secrets),
            )
            raise AuthenticationException()

        try:
            event = json.loads(text)
        except ValueError as exc:
            raise InvalidPaymentEventException("Webhook body is not valid JSON") from exc
        if not isinstance(event, dict):
            raise InvalidPaymentEventException("Webhook body must be a JSON object")

        logger.debug(
            "Webhook %s verified with secret #%d", event.get("type", "unknown"), verified_with + 1
        )
        return event


__all__ = ["WebhookSignatureVerifier"]
