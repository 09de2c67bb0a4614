"""Tests for the alert dispatcher."""

from unittest.mock import AsyncMock

import pytest

from alt_account_guard.alerter.dispatcher import AlertDispatcher
from alt_account_guard.alerter.models import DispatchResult, FormattedAlert


@pytest.fixture
def alert() -> FormattedAlert:
    return FormattedAlert(title="t", body="b", discord_payload={"content": "c"}, plain_text="t\nb")


class TestDispatchResult:
    """Tests for DispatchResult."""

    def test_delivered_requires_a_success_and_no_failures(self) -> None:
        assert DispatchResult().delivered is False
        assert DispatchResult(success_count=1).delivered is True
        assert DispatchResult(success_count=1, failure_count=1).delivered is False
        assert DispatchResult(success_count=1, failure_count=1).all_succeeded is False


class TestAlertDispatcher:
    """Tests for AlertDispatcher."""

    @pytest.mark.asyncio
    async def test_no_channels(self, alert: FormattedAlert) -> None:
        result = await AlertDispatcher().dispatch(alert)

        assert result.success_count == 0
        assert result.delivered is False

    @pytest.mark.asyncio
    async def test_all_channels_succeed(self, alert: FormattedAlert, channel) -> None:
        other = AsyncMock()
        other.name = "other"

        result = await AlertDispatcher([channel, other]).dispatch(alert)

        assert result.success_count == 2
        assert result.delivered is True
        assert channel.sent == [alert]
        other.send.assert_awaited_once_with(alert)

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(
        self, alert: FormattedAlert, channel, failing_channel
    ) -> None:
        result = await AlertDispatcher([channel, failing_channel]).dispatch(alert)

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.delivered is False
        assert "broken" in result.errors

    @pytest.mark.asyncio
    async def test_aclose_closes_channels_that_support_it(self) -> None:
        closable = AsyncMock()
        closable.name = "closable"

        await AlertDispatcher([closable]).aclose()

        closable.aclose.assert_awaited_once()
