"""Correlation engine.

Given the checked account and a match key, a strategy finds other accounts
sharing that key. For each of them the engine creates at most one
correlation record per (unordered pair, strategy), snapshots display
identifiers into the record, and hands the new record to the notifier.

Uniqueness is enforced by the store: pairs are canonicalized and inserted
with ``ON CONFLICT DO NOTHING``, so two concurrent checks of the same pair
(in either direction) produce exactly one record and one alert.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from alt_account_guard.detector.models import CorrelationDetails, CorrelationStrategy, MatchCandidate
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import (
    AccountProfileRepository,
    CorrelationRecordDTO,
    CorrelationRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from alt_account_guard.alerter.notifier import Notifier

logger = logging.getLogger(__name__)


class MatchStrategy(Protocol):
    """A way of finding accounts linked to the checked one."""

    kind: CorrelationStrategy

    def confidence(self, candidate: MatchCandidate) -> int: ...

    async def find_candidates(
        self, session: AsyncSession, account_id: str, match_key: str
    ) -> list[MatchCandidate]: ...


class Correlator:
    """Creates deduplicated correlation records and triggers their alerts.

    Args:
        db: Database manager.
        notifier: Sends the alert for each new record. Without one,
            records are created with ``alert_sent`` false and left for the
            resend sweep.
    """

    def __init__(self, db: DatabaseManager, notifier: Notifier | None = None) -> None:
        self._db = db
        self._notifier = notifier

    async def correlate(
        self,
        account_id: str,
        match_key: str,
        strategy: MatchStrategy,
        *,
        network_origin: str | None = None,
        device_signature: str | None = None,
    ) -> list[CorrelationRecordDTO]:
        """Correlate an account against every other account sharing a key.

        Args:
            account_id: Checked account.
            match_key: Network origin or device signature to match on.
            strategy: Strategy that finds candidates and scores them.
            network_origin: Origin observed on this check, stored on records.
            device_signature: Signature observed on this check, stored on records.

        Returns:
            Records created by this call (duplicates excluded).
        """
        async with self._db.get_async_session() as session:
            candidates = await strategy.find_candidates(session, account_id, match_key)

        created: list[CorrelationRecordDTO] = []
        for candidate in candidates:
            if candidate.account_id == account_id:
                continue
            record = await self._record_pair(
                account_id,
                candidate,
                strategy,
                match_key,
                network_origin=network_origin,
                device_signature=device_signature,
            )
            if record is None:
                continue
            created.append(record)
            logger.info(
                "Correlation created: %s <-> %s (%s, confidence %d)",
                record.observed_account_id,
                record.other_account_id,
                record.strategy,
                record.confidence_score,
            )
            if self._notifier is not None:
                await self._notify(self._notifier, record)

        return created

    async def _record_pair(
        self,
        account_id: str,
        candidate: MatchCandidate,
        strategy: MatchStrategy,
        match_key: str,
        *,
        network_origin: str | None,
        device_signature: str | None,
    ) -> CorrelationRecordDTO | None:
        async with self._db.get_async_session() as session:
            records = CorrelationRepository(session)
            if await records.exists(account_id, candidate.account_id, strategy.kind.value):
                return None

            profiles = await AccountProfileRepository(session).get_many(
                [account_id, candidate.account_id]
            )
            primary = profiles.get(account_id)
            alt = profiles.get(candidate.account_id)
            details = CorrelationDetails(
                shared_key=match_key,
                primary_display_name=primary.display_name if primary else None,
                primary_external_id=primary.external_id if primary else None,
                alt_display_name=alt.display_name if alt else None,
                alt_external_id=alt.external_id if alt else None,
                match_count=candidate.match_count,
            )

            return await records.insert_if_absent(
                CorrelationRecordDTO(
                    account_a=account_id,
                    account_b=candidate.account_id,
                    strategy=strategy.kind.value,
                    confidence_score=strategy.confidence(candidate),
                    observed_account_id=account_id,
                    network_origin=network_origin,
                    device_signature=device_signature,
                    details=details.to_dict(),
                )
            )

    async def _notify(self, notifier: Notifier, record: CorrelationRecordDTO) -> None:
        # The record is committed; a failed alert leaves it pending.
        delivered = await notifier.notify_correlation(record)
        if delivered:
            record.alert_sent = True
