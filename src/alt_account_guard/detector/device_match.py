"""Device-signature correlation strategy."""

from __future__ import annotations

from typing import TYPE_CHECKING

from alt_account_guard.detector.models import CorrelationStrategy, MatchCandidate
from alt_account_guard.storage.repos import DeviceRegistrationRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_DEVICE_CONFIDENCE = 85


class DeviceMatchStrategy:
    """Finds accounts registered on the same device signature.

    A shared device is a stronger signal than a shared network origin and
    is scored with a fixed confidence.
    """

    kind = CorrelationStrategy.DEVICE_MATCH

    def __init__(self, *, confidence: int = DEFAULT_DEVICE_CONFIDENCE) -> None:
        self._confidence = confidence

    def confidence(self, candidate: MatchCandidate) -> int:
        return self._confidence

    async def find_candidates(
        self, session: AsyncSession, account_id: str, match_key: str
    ) -> list[MatchCandidate]:
        others = await DeviceRegistrationRepository(session).accounts_sharing_signature(
            match_key, exclude_account_id=account_id
        )
        return [MatchCandidate(account_id=other) for other in others]
