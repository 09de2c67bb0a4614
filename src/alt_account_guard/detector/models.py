"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

DEVICE_BAN_REASON = "This device has been banned from accessing the website."
DEFAULT_BAN_REASON = "You are banned from this website."


class CorrelationStrategy(str, Enum):
    """How two accounts were linked."""

    NETWORK_MATCH = "network_match"
    DEVICE_MATCH = "device_match"


class ReviewStatus(str, Enum):
    """Moderator review state of a correlation record."""

    FLAGGED = "flagged"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class MatchCandidate:
    """Another account sharing a match key with the checked account.

    Attributes:
        account_id: The other account.
        match_count: Provenance rows of the other account with the shared
            key, or None when the strategy does not count matches.
    """

    account_id: str
    match_count: int | None = None


@dataclass(frozen=True)
class CorrelationDetails:
    """Snapshot captured when a correlation record is created.

    Display identifiers are copied at detection time so that later profile
    renames do not rewrite history.
    """

    shared_key: str
    primary_display_name: str | None = None
    primary_external_id: str | None = None
    alt_display_name: str | None = None
    alt_external_id: str | None = None
    match_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON ``details`` column."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CorrelationDetails:
        match_count = data.get("match_count")
        return cls(
            shared_key=str(data.get("shared_key") or ""),
            primary_display_name=data.get("primary_display_name"),
            primary_external_id=data.get("primary_external_id"),
            alt_display_name=data.get("alt_display_name"),
            alt_external_id=data.get("alt_external_id"),
            match_count=int(match_count) if match_count is not None else None,
        )


@dataclass(frozen=True)
class DeviceCheckResult:
    """Outcome of a device registry upsert.

    Attributes:
        blocked: The (account, device) pair is blocked.
        propagated: The block was inherited from another account's device
            registration during this call.
    """

    blocked: bool
    propagated: bool = False


@dataclass(frozen=True)
class BanVerdict:
    """Outcome of a ban registry lookup."""

    banned: bool
    reason: str | None = None
    ban_id: int | None = None
    matched_on: str | None = None  # account|device

    @classmethod
    def clear(cls) -> BanVerdict:
        return cls(banned=False)
