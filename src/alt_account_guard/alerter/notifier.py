"""Operator notifications for correlations and blocked checks."""

from __future__ import annotations

import logging

from alt_account_guard.alerter.dispatcher import AlertDispatcher
from alt_account_guard.alerter.formatter import AlertFormatter
from alt_account_guard.alerter.models import BanNotice, CorrelationAlert, redact_signature
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import (
    AccountProfileRepository,
    CorrelationRecordDTO,
    CorrelationRepository,
)

logger = logging.getLogger(__name__)


class Notifier:
    """Formats and dispatches alerts, recording successful delivery.

    A correlation record is marked ``alert_sent`` only after every channel
    accepted its alert. Undelivered records stay pending for
    ``resend_pending_alerts``.
    """

    def __init__(
        self,
        db: DatabaseManager,
        dispatcher: AlertDispatcher,
        *,
        formatter: AlertFormatter | None = None,
        dry_run: bool = False,
        signature_preview_chars: int = 20,
    ) -> None:
        self._db = db
        self.dispatcher = dispatcher
        self.formatter = formatter or AlertFormatter()
        self.dry_run = dry_run
        self.signature_preview_chars = signature_preview_chars

    async def notify_correlation(self, record: CorrelationRecordDTO) -> bool:
        """Send the alert for a correlation record.

        Returns:
            True if the alert was delivered and the record marked sent.
        """
        if record.id is None:
            raise ValueError("Correlation record must be persisted before alerting")

        alert = CorrelationAlert.from_record(
            record, signature_preview_chars=self.signature_preview_chars
        )
        formatted = self.formatter.format_correlation(alert)

        if self.dry_run:
            logger.info("[DRY RUN] Would send alert: %s", formatted.plain_text.replace("\n", " | "))
            return False

        result = await self.dispatcher.dispatch(formatted)
        if not result.delivered:
            if result.failure_count:
                logger.warning(
                    "Alert for correlation %d not delivered: %s", record.id, result.errors
                )
            return False

        async with self._db.get_async_session() as session:
            await CorrelationRepository(session).mark_alert_sent(record.id)
        logger.info(
            "Alert sent for correlation %d (%s, confidence %d)",
            record.id,
            record.strategy,
            record.confidence_score,
        )
        return True

    async def notify_block(
        self,
        account_id: str,
        reason: str,
        *,
        device_signature: str | None = None,
        propagated: bool = False,
    ) -> bool:
        """Send a ban-enforcement notice. Failures are logged, never raised."""
        try:
            async with self._db.get_async_session() as session:
                profiles = await AccountProfileRepository(session).get_many([account_id])
            profile = profiles.get(account_id)
            notice = BanNotice(
                account_id=account_id,
                reason=reason,
                display_name=profile.display_name if profile else None,
                external_id=profile.external_id if profile else None,
                device_signature=(
                    redact_signature(device_signature, self.signature_preview_chars)
                    if device_signature
                    else None
                ),
                propagated=propagated,
            )
            formatted = self.formatter.format_ban_notice(notice)

            if self.dry_run:
                logger.info(
                    "[DRY RUN] Would send ban notice: %s", formatted.plain_text.replace("\n", " | ")
                )
                return False

            result = await self.dispatcher.dispatch(formatted)
            return result.delivered
        except Exception as e:
            logger.warning("Failed to send ban notice for account %s: %s", account_id, e)
            return False
