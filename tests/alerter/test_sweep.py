"""Tests for the notifier and the pending-alert sweep."""

import pytest

from alt_account_guard.alerter.dispatcher import AlertDispatcher
from alt_account_guard.alerter.notifier import Notifier
from alt_account_guard.alerter.sweep import resend_pending_alerts
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import (
    AccountProfileDTO,
    AccountProfileRepository,
    CorrelationRecordDTO,
    CorrelationRepository,
)


async def _pending(db: DatabaseManager, *pairs: tuple[str, str]) -> list[CorrelationRecordDTO]:
    created = []
    async with db.get_async_session() as session:
        repo = CorrelationRepository(session)
        for x, y in pairs:
            created.append(
                await repo.insert_if_absent(
                    CorrelationRecordDTO(
                        account_a=x,
                        account_b=y,
                        strategy="network_match",
                        confidence_score=50,
                        observed_account_id=y,
                        network_origin="10.0.0.1",
                        details={"shared_key": "10.0.0.1", "match_count": 1},
                    )
                )
            )
    return created


class TestNotifier:
    """Tests for Notifier."""

    @pytest.mark.asyncio
    async def test_delivery_marks_record_sent(self, db: DatabaseManager, channel) -> None:
        (record,) = await _pending(db, ("a", "b"))

        delivered = await Notifier(db, AlertDispatcher([channel])).notify_correlation(record)

        assert delivered is True
        assert len(channel.sent) == 1
        async with db.get_async_session() as session:
            assert (await CorrelationRepository(session).get(record.id)).alert_sent is True

    @pytest.mark.asyncio
    async def test_no_channels_leaves_record_pending(self, db: DatabaseManager) -> None:
        (record,) = await _pending(db, ("a", "b"))

        delivered = await Notifier(db, AlertDispatcher()).notify_correlation(record)

        assert delivered is False
        async with db.get_async_session() as session:
            assert (await CorrelationRepository(session).get(record.id)).alert_sent is False

    @pytest.mark.asyncio
    async def test_dry_run_skips_dispatch(self, db: DatabaseManager, channel) -> None:
        (record,) = await _pending(db, ("a", "b"))

        delivered = await Notifier(db, AlertDispatcher([channel]), dry_run=True).notify_correlation(record)

        assert delivered is False
        assert channel.attempts == 0

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_delivery(
        self, db: DatabaseManager, channel, failing_channel
    ) -> None:
        (record,) = await _pending(db, ("a", "b"))

        delivered = await Notifier(
            db, AlertDispatcher([channel, failing_channel])
        ).notify_correlation(record)

        assert delivered is False

    @pytest.mark.asyncio
    async def test_unsaved_record_is_rejected(self, db: DatabaseManager, channel) -> None:
        record = CorrelationRecordDTO(
            account_a="a", account_b="b", strategy="network_match", confidence_score=50, observed_account_id="a"
        )

        with pytest.raises(ValueError):
            await Notifier(db, AlertDispatcher([channel])).notify_correlation(record)

    @pytest.mark.asyncio
    async def test_block_notice_uses_profile(self, db: DatabaseManager, channel) -> None:
        async with db.get_async_session() as session:
            await AccountProfileRepository(session).upsert(
                AccountProfileDTO(account_id="c", display_name="carol", external_id="333")
            )

        delivered = await Notifier(db, AlertDispatcher([channel])).notify_block(
            "c", "banned", device_signature="0123456789abcdef0123456789", propagated=True
        )

        assert delivered is True
        assert "carol" in channel.sent[0].body
        assert "0123456789abcdef0123..." in channel.sent[0].body

    @pytest.mark.asyncio
    async def test_block_notice_failure_is_swallowed(self, db: DatabaseManager, failing_channel) -> None:
        delivered = await Notifier(db, AlertDispatcher([failing_channel])).notify_block("c", "banned")

        assert delivered is False


class TestResendPendingAlerts:
    """Tests for resend_pending_alerts."""

    @pytest.mark.asyncio
    async def test_nothing_pending(self, db: DatabaseManager, channel) -> None:
        assert await resend_pending_alerts(db, Notifier(db, AlertDispatcher([channel]))) == 0

    @pytest.mark.asyncio
    async def test_resends_oldest_first_within_limit(self, db: DatabaseManager, channel) -> None:
        records = await _pending(db, ("a", "b"), ("a", "c"), ("a", "d"))

        delivered = await resend_pending_alerts(
            db, Notifier(db, AlertDispatcher([channel])), limit=2, min_age_seconds=0
        )

        assert delivered == 2
        async with db.get_async_session() as session:
            pending = await CorrelationRepository(session).list_pending_alerts(limit=10)
        assert [r.id for r in pending] == [records[2].id]

    @pytest.mark.asyncio
    async def test_failed_resend_stays_pending(self, db: DatabaseManager, failing_channel) -> None:
        await _pending(db, ("a", "b"))

        delivered = await resend_pending_alerts(
            db, Notifier(db, AlertDispatcher([failing_channel])), min_age_seconds=0
        )

        assert delivered == 0
        async with db.get_async_session() as session:
            assert len(await CorrelationRepository(session).list_pending_alerts(limit=10)) == 1

    @pytest.mark.asyncio
    async def test_recent_records_are_left_to_their_check(self, db: DatabaseManager, channel) -> None:
        await _pending(db, ("a", "b"))

        delivered = await resend_pending_alerts(db, Notifier(db, AlertDispatcher([channel])))

        assert delivered == 0
        assert channel.attempts == 0
        async with db.get_async_session() as session:
            assert len(await CorrelationRepository(session).list_pending_alerts(limit=10)) == 1
