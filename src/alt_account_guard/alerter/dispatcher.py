"""Fan-out of formatted alerts to delivery channels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from alt_account_guard.alerter.models import DispatchResult, FormattedAlert

logger = logging.getLogger(__name__)


class AlertDeliveryError(Exception):
    """Raised by a channel that could not deliver an alert."""


class AlertChannel(Protocol):
    """A destination for formatted alerts."""

    name: str

    async def send(self, alert: FormattedAlert) -> None:
        """Deliver one alert, raising AlertDeliveryError on failure."""
        ...


class AlertDispatcher:
    """Sends each alert to every configured channel concurrently.

    Channel failures are counted and logged, never raised.

    Example:
        ```python
        dispatcher = AlertDispatcher([DiscordChannel(settings.discord)])
        result = await dispatcher.dispatch(formatted)
        if result.delivered:
            ...
        ```
    """

    def __init__(self, channels: Sequence[AlertChannel] = ()) -> None:
        self.channels = list(channels)

    async def dispatch(self, alert: FormattedAlert) -> DispatchResult:
        result = DispatchResult()
        if not self.channels:
            logger.debug("No alert channels configured, dropping alert: %s", alert.title)
            return result

        outcomes = await asyncio.gather(*(self._send(channel, alert) for channel in self.channels))
        for channel, error in zip(self.channels, outcomes, strict=True):
            if error is None:
                result.success_count += 1
            else:
                result.failure_count += 1
                result.errors[channel.name] = error
        return result

    async def _send(self, channel: AlertChannel, alert: FormattedAlert) -> str | None:
        try:
            await channel.send(alert)
        except Exception as e:
            logger.warning("Alert delivery via %s failed: %s", channel.name, e)
            return str(e) or type(e).__name__
        return None

    async def aclose(self) -> None:
        """Close channels that hold network resources."""
        for channel in self.channels:
            close = getattr(channel, "aclose", None)
            if close is not None:
                await close()
