from __future__ import annotations

import time

import pytest

from marketplace.core.exceptions import (
    AuthenticationException,
    InvalidPaymentEventException,
    ServiceException,
)
from marketplace.services.webhook_signature_service import WebhookSignatureVerifier

SECRET = "whsec_primary"
OTHER_SECRET = "whsec_platform"


@pytest.fixture
def verifier() -> WebhookSignatureVerifier:
    return WebhookSignatureVerifier([SECRET, OTHER_SECRET], tolerance_seconds=300)


@pytest.fixture
def payload(checkout_event, encode_event) -> str:
    return encode_event(checkout_event(course_id="course_1", student_id="student_1"))


def test_verify_returns_parsed_event(verifier, payload, sign_payload):
    event = verifier.verify(payload.encode(), sign_payload(payload, SECRET))

    assert event["type"] == "checkout.session.completed"
    assert event["data"]["object"]["metadata"]["courseId"] == "course_1"


def test_verify_accepts_any_configured_secret(verifier, payload, sign_payload):
    event = verifier.verify(payload.encode(), sign_payload(payload, OTHER_SECRET))

    assert event["data"]["object"]["metadata"]["studentId"] == "student_1"


def test_verify_rejects_wrong_secret(verifier, payload, sign_payload):
    with pytest.raises(AuthenticationException) as exc_info:
        verifier.verify(payload.encode(), sign_payload(payload, "whsec_attacker"))

    assert exc_info.value.code == "WEBHOOK_AUTHENTICATION_FAILED"


def test_verify_rejects_tampered_body(verifier, payload, sign_payload):
    header = sign_payload(payload, SECRET)
    tampered = payload.replace("10000", "100")

    with pytest.raises(AuthenticationException):
        verifier.verify(tampered.encode(), header)


def test_verify_rejects_stale_timestamp(verifier, payload, sign_payload):
    header = sign_payload(payload, SECRET, timestamp=int(time.time()) - 301 - 60)

    with pytest.raises(AuthenticationException):
        verifier.verify(payload.encode(), header)


def test_stale_and_forged_failures_share_one_message(verifier, payload, sign_payload):
    messages = set()
    for header in (
        sign_payload(payload, SECRET, timestamp=int(time.time()) - 3600),
        sign_payload(payload, "whsec_attacker"),
        "garbage",
    ):
        with pytest.raises(AuthenticationException) as exc_info:
            verifier.verify(payload.encode(), header)
        messages.add(exc_info.value.message)

    assert len(messages) == 1


@pytest.mark.parametrize("header", [None, ""])
def test_verify_requires_signature_header(verifier, payload, header):
    with pytest.raises(AuthenticationException):
        verifier.verify(payload.encode(), header)


def test_verify_without_configured_secrets_is_a_server_error(payload, sign_payload):
    verifier = WebhookSignatureVerifier(["", ""])

    with pytest.raises(ServiceException) as exc_info:
        verifier.verify(payload.encode(), sign_payload(payload, SECRET))

    assert exc_info.value.code == "WEBHOOK_NOT_CONFIGURED"


def test_verify_signed_non_object_body(verifier, sign_payload):
    body = "[1, 2, 3]"

    with pytest.raises(InvalidPaymentEventException):
        verifier.verify(body.encode(), sign_payload(body, SECRET))
