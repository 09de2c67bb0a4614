"""Ban registry lookups.

An account is banned when an active ban names it directly, or when an
active ban lists one of the device signatures known for it. The two
conditions are looked up separately and combined here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from alt_account_guard.detector.models import DEFAULT_BAN_REASON, BanVerdict
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.repos import BanRepository, DeviceRegistrationRepository

logger = logging.getLogger(__name__)


class BanRegistry:
    """Answers whether an account is banned."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def is_banned(self, account_id: str, known_signatures: Iterable[str] = ()) -> BanVerdict:
        """Check direct and device-signature bans.

        Args:
            account_id: Account to check.
            known_signatures: Device signatures associated with the account.

        Returns:
            BanVerdict with the reason of the matching ban, if any.
        """
        signatures = [s for s in known_signatures if s]
        async with self._db.get_async_session() as session:
            bans = BanRepository(session)
            ban = await bans.find_active_account_ban(account_id)
            matched_on = "account"
            if ban is None:
                ban = await bans.find_active_device_ban(signatures)
                matched_on = "device"

        if ban is None:
            return BanVerdict.clear()

        logger.info("Account %s matched active ban %s on %s", account_id, ban.id, matched_on)
        return BanVerdict(
            banned=True,
            reason=ban.reason or DEFAULT_BAN_REASON,
            ban_id=ban.id,
            matched_on=matched_on,
        )

    async def check_account(self, account_id: str, observed_signature: str | None = None) -> BanVerdict:
        """Check an account against bans using every signature it has registered.

        Args:
            account_id: Account to check.
            observed_signature: Signature presented on the current request.
        """
        async with self._db.get_async_session() as session:
            signatures = await DeviceRegistrationRepository(session).signatures_for_account(account_id)
        if observed_signature and observed_signature not in signatures:
            signatures.append(observed_signature)
        return await self.is_banned(account_id, signatures)
