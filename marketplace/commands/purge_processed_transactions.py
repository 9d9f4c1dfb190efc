#!/usr/bin/env python
# marketplace/commands/purge_processed_transactions.py
"""
Purge expired entries from the transaction idempotency ledger.

Usage:
    python -m marketplace.commands.purge_processed_transactions
    python -m marketplace.commands.purge_processed_transactions --retention-days 45
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from marketplace.core.config import settings
from marketplace.database import SessionLocal, session_scope
from marketplace.services.idempotency_service import IdempotencyService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Stripe retries undelivered webhooks for up to three days.
MIN_RETENTION_DAYS = 3


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Purge expired processed transaction ids")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.idempotency_retention_days,
        help="Keep ledger rows newer than this many days (default: %(default)s)",
    )
    args = parser.parse_args(argv)

    if args.retention_days <= MIN_RETENTION_DAYS:
        logger.error(
            "Retention of %d days is inside the webhook redelivery window; refusing to purge",
            args.retention_days,
        )
        return 2

    with session_scope(SessionLocal) as db:
        deleted = IdempotencyService(db, retention_days=args.retention_days).purge_expired()

    logger.info("Purged %d processed transaction ids", deleted)
    return 0


if __name__ == "__main__":
    sys.exit(main())
