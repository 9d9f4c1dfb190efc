from __future__ import annotations

from decimal import Decimal
import hashlib
import hmac
import json
import time
from typing import Any, Callable, Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.core.constants import CHECKOUT_COMPLETED_EVENT
from marketplace.core.ulid_helper import generate_ulid
from marketplace.database import Base

# Import models so Base.metadata is populated for create_all.
import marketplace.models  # noqa: F401
from marketplace.models.course import Course

TEST_WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path) -> sessionmaker:
    """File-backed SQLite so worker threads get real, separate connections."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_size=10,
        max_overflow=10,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


def _add_course(session: Session, price: Decimal, **fields: Any) -> Course:
    course = Course(
        id=generate_ulid(),
        title=fields.pop("title", "Intro to Databases"),
        price=price,
        instructor_id=fields.pop("instructor_id", generate_ulid()),
        enrollment_count=fields.pop("enrollment_count", 0),
    )
    session.add(course)
    session.commit()
    return course


@pytest.fixture
def make_course(db) -> Callable[..., Course]:
    def _make(price: Decimal = Decimal("100.00"), **fields: Any) -> Course:
        return _add_course(db, price, **fields)

    return _make


@pytest.fixture
def course(make_course) -> Course:
    return make_course()


@pytest.fixture
def checkout_event() -> Callable[..., Dict[str, Any]]:
    """Build a Stripe checkout.session event the way Stripe delivers it."""

    def _build(
        *,
        course_id: str,
        student_id: Optional[str] = None,
        amount: Optional[int] = 10000,
        currency: str = "usd",
        payment_intent: Optional[str] = None,
        event_type: str = CHECKOUT_COMPLETED_EVENT,
        payment_status: str = "paid",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        session_id = f"cs_test_{generate_ulid()}"
        return {
            "id": f"evt_{generate_ulid()}",
            "object": "event",
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "payment_intent": payment_intent or f"pi_{generate_ulid()}",
                    "amount_total": amount,
                    "currency": currency,
                    "payment_status": payment_status,
                    "metadata": metadata
                    if metadata is not None
                    else {"courseId": course_id, "studentId": student_id or generate_ulid()},
                }
            },
        }

    return _build


@pytest.fixture
def sign_payload() -> Callable[..., str]:
    """Produce a Stripe-Signature header: ``t=<ts>,v1=<hmac_sha256(secret, "<ts>.<body>")>``."""

    def _sign(payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
        ts = int(time.time()) if timestamp is None else timestamp
        signature = hmac.new(
            secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return f"t={ts},v1={signature}"

    return _sign


@pytest.fixture
def encode_event() -> Callable[[Dict[str, Any]], str]:
    def _encode(event: Dict[str, Any]) -> str:
        return json.dumps(event, separators=(",", ":"))

    return _encode
