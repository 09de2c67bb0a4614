"""Discord bot channel.

Posts alerts to a guild channel through the Discord REST API using a bot
token (``Authorization: Bot <token>``).
"""

from __future__ import annotations

import logging

import httpx

from alt_account_guard.alerter.dispatcher import AlertDeliveryError
from alt_account_guard.alerter.models import FormattedAlert
from alt_account_guard.config import DiscordSettings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class DiscordChannel:
    """Delivers formatted alerts as Discord channel messages.

    Args:
        settings: Discord bot credentials and target channel.
        client: Optional pre-built httpx client (tests inject one with a
            mock transport). A client created here is closed by ``aclose``.
    """

    name = "discord"

    def __init__(
        self,
        settings: DiscordSettings,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not settings.enabled or settings.bot_token is None:
            raise ValueError("Discord channel requires DISCORD_BOT_TOKEN and DISCORD_DETECTION_CHANNEL_ID")
        self._token = settings.bot_token.get_secret_value()
        self._url = f"{settings.api_base_url}/channels/{settings.detection_channel_id}/messages"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, alert: FormattedAlert) -> None:
        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bot {self._token}"},
                json=alert.discord_payload,
            )
        except httpx.HTTPError as e:
            raise AlertDeliveryError(f"Discord request failed: {e}") from e

        if response.status_code >= 400:
            raise AlertDeliveryError(
                f"Discord rejected message with HTTP {response.status_code}: {response.text[:200]}"
            )
        logger.debug("Discord message posted: %s", alert.title)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
