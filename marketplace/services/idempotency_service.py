"""
Idempotency ledger for provider transaction ids.

A transaction id reaches one terminal state (completed or rejected) and stays
there. The ledger row for a completion is written inside the same database
transaction as the payment and enrollment, so the unique constraint on
``processed_transactions.transaction_id`` decides which of two concurrent
deliveries wins.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.core.enums import TransactionState
from marketplace.core.exceptions import DuplicateTransactionException, RepositoryException
from marketplace.models.processed_transaction import ProcessedTransaction
from marketplace.repositories.processed_transaction_repository import (
    ProcessedTransactionRepository,
)
from marketplace.services.base import BaseService


class IdempotencyService(BaseService):
    """Tracks which transaction ids have already been fulfilled or rejected."""

    def __init__(
        self,
        db: Session,
        repository: Optional[ProcessedTransactionRepository] = None,
        *,
        retention_days: Optional[int] = None,
    ) -> None:
        super().__init__(db)
        self.repository = repository or ProcessedTransactionRepository(db)
        self.retention_days = (
            retention_days if retention_days is not None else settings.idempotency_retention_days
        )

    def has_processed(self, transaction_id: str) -> bool:
        """True once the id reached a terminal state, whichever it was."""
        return self.repository.exists_for(transaction_id)

    def get_state(self, transaction_id: str) -> TransactionState:
        entry = self.repository.find_by_transaction_id(transaction_id)
        if entry is None:
            return TransactionState.UNSEEN
        return TransactionState(entry.status)

    def mark_processed(
        self,
        transaction_id: str,
        *,
        event_type: str,
        event_id: Optional[str] = None,
    ) -> ProcessedTransaction:
        """
        Claim ``transaction_id`` as completed inside the caller's transaction.

        Raises DuplicateTransactionException when another delivery committed
        the id first. The session has been rolled back in that case.
        """
        try:
            return self.repository.mark(
                transaction_id=transaction_id,
                event_type=event_type,
                event_id=event_id,
                status=TransactionState.COMPLETED.value,
            )
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateTransactionException(transaction_id) from exc
            raise

    def mark_rejected(
        self,
        transaction_id: str,
        *,
        event_type: str,
        event_id: Optional[str],
        code: str,
        reason: str,
    ) -> bool:
        """
        Persist a terminal rejection in its own transaction.

        Returns False when the id already had a recorded outcome.
        """
        with self.transaction():
            inserted = self.repository.insert_rejection_if_absent(
                transaction_id=transaction_id,
                event_type=event_type,
                event_id=event_id,
                rejection_code=code,
                rejection_reason=reason,
            )
        if not inserted:
            self.logger.info(
                "Rejection for %s not recorded: outcome already present", transaction_id
            )
        return inserted

    @BaseService.measure_operation("purge_expired")
    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete ledger rows older than the retention window.

        The window must outlast the provider's redelivery period, otherwise a
        late redelivery would be fulfilled a second time.
        """
        reference = now or datetime.now(timezone.utc)
        cutoff = reference - timedelta(days=self.retention_days)
        with self.transaction():
            deleted = self.repository.delete_processed_before(cutoff)
        self.logger.info(
            "Purged %d processed transaction ids older than %s", deleted, cutoff.isoformat()
        )
        return deleted
