"""Network-origin correlation strategy.

Two accounts seen from the same network origin are a weak signal (shared
households and networks are common), so confidence grows with the number
of times the other account used that origin and is capped below certainty.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from alt_account_guard.detector.models import CorrelationStrategy, MatchCandidate
from alt_account_guard.storage.repos import ProvenanceRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_BASE_CONFIDENCE = 40
DEFAULT_STEP_CONFIDENCE = 10
DEFAULT_MAX_CONFIDENCE = 95


class NetworkMatchStrategy:
    """Finds accounts sharing a network origin in the provenance log."""

    kind = CorrelationStrategy.NETWORK_MATCH

    def __init__(
        self,
        *,
        base_confidence: int = DEFAULT_BASE_CONFIDENCE,
        step_confidence: int = DEFAULT_STEP_CONFIDENCE,
        max_confidence: int = DEFAULT_MAX_CONFIDENCE,
    ) -> None:
        self._base = base_confidence
        self._step = step_confidence
        self._max = max_confidence

    def confidence(self, candidate: MatchCandidate) -> int:
        """Return ``min(max, base + step * match_count)``."""
        match_count = candidate.match_count or 0
        return min(self._max, self._base + self._step * match_count)

    async def find_candidates(
        self, session: AsyncSession, account_id: str, match_key: str
    ) -> list[MatchCandidate]:
        counts = await ProvenanceRepository(session).match_counts_for_origin(
            match_key, exclude_account_id=account_id
        )
        return [MatchCandidate(account_id=other, match_count=count) for other, count in counts.items()]
