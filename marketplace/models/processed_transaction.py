"""Idempotency ledger model for provider transaction ids."""

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from marketplace.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ProcessedTransaction(Base):
    """
    One row per provider transaction id that reached a terminal state.

    The unique constraint on ``transaction_id`` decides which of two concurrent
    deliveries commits; the loser's insert fails and its transaction rolls back.
    """

    __tablename__ = "processed_transactions"

    __table_args__ = (
        sa.UniqueConstraint("transaction_id", name="uq_processed_transactions_transaction_id"),
        sa.Index("ix_processed_transactions_status", "status"),
        sa.Index("ix_processed_transactions_processed_at", "processed_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    rejection_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
