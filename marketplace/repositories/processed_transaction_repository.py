"""Repository helpers for the transaction idempotency ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, cast

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.enums import TransactionState
from marketplace.core.exceptions import RepositoryException
from marketplace.core.ulid_helper import generate_ulid
from marketplace.models.processed_transaction import ProcessedTransaction
from marketplace.repositories.base_repository import BaseRepository


class ProcessedTransactionRepository(BaseRepository[ProcessedTransaction]):
    """Repository for idempotency ledger queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, ProcessedTransaction)

    def exists_for(self, transaction_id: str) -> bool:
        return self.exists(transaction_id=transaction_id)

    def find_by_transaction_id(self, transaction_id: str) -> Optional[ProcessedTransaction]:
        return cast(
            Optional[ProcessedTransaction], self.find_one_by(transaction_id=transaction_id)
        )

    def mark(
        self,
        *,
        transaction_id: str,
        event_type: str,
        event_id: str | None = None,
        status: str = TransactionState.COMPLETED.value,
        payment_id: str | None = None,
    ) -> ProcessedTransaction:
        """
        Insert the ledger row inside the caller's transaction.

        A concurrent delivery that already committed the same key makes this
        raise RepositoryException with the IntegrityError as ``__cause__``.
        """
        return self.create(
            transaction_id=transaction_id,
            event_type=event_type,
            event_id=event_id,
            status=status,
            payment_id=payment_id,
        )

    def insert_rejection_if_absent(
        self,
        *,
        transaction_id: str,
        event_type: str,
        event_id: str | None,
        rejection_code: str,
        rejection_reason: str,
    ) -> bool:
        """
        Record a rejected key unless another delivery recorded an outcome first.

        Uses the dialect's ON CONFLICT DO NOTHING so a lost race is not an error.
        Returns True when this call inserted the row.
        """
        now = datetime.now(timezone.utc)
        values = {
            "id": generate_ulid(),
            "transaction_id": transaction_id,
            "event_type": event_type,
            "event_id": event_id,
            "status": TransactionState.REJECTED.value,
            "rejection_code": rejection_code,
            "rejection_reason": rejection_reason,
            "processed_at": now,
            "created_at": now,
        }
        insert_fn = pg_insert if self.dialect_name == "postgresql" else sqlite_insert
        statement = (
            insert_fn(ProcessedTransaction.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["transaction_id"])
        )
        try:
            result = self.db.execute(statement)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record rejection for %s: %s", transaction_id, str(exc))
            raise RepositoryException("Failed to record rejected transaction") from exc
        return bool(result.rowcount)

    def delete_processed_before(self, cutoff: datetime) -> int:
        try:
            result = self.db.execute(
                delete(ProcessedTransaction).where(ProcessedTransaction.processed_at < cutoff)
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to purge idempotency ledger: %s", str(exc))
            raise RepositoryException("Failed to purge idempotency ledger") from exc
        return int(result.rowcount or 0)
