"""Re-dispatch of correlation alerts that were never delivered."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from alt_account_guard.alerter.notifier import Notifier
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import CorrelationRepository

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGE_SECONDS = 60.0


async def resend_pending_alerts(
    db: DatabaseManager,
    notifier: Notifier,
    *,
    limit: int = 50,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
) -> int:
    """Retry alerts for correlation records with ``alert_sent`` still false.

    Records younger than ``min_age_seconds`` are left alone: their first
    delivery may still be in flight in the check that created them.

    Args:
        db: Database manager.
        notifier: Notifier used for delivery.
        limit: Maximum records to retry, oldest first.
        min_age_seconds: Minimum record age before a retry.

    Returns:
        Number of alerts delivered.
    """
    cutoff = datetime.now(UTC) - timedelta(seconds=min_age_seconds)
    async with db.get_async_session() as session:
        pending = await CorrelationRepository(session).list_pending_alerts(
            limit=limit, created_before=cutoff
        )

    if not pending:
        return 0

    delivered = 0
    for record in pending:
        if await notifier.notify_correlation(record):
            delivered += 1

    logger.info("Resent %d of %d pending correlation alerts", delivered, len(pending))
    return delivered
