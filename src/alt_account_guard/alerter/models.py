"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from alt_account_guard.detector.models import CorrelationDetails, CorrelationStrategy
from alt_account_guard.storage.repos import CorrelationRecordDTO


def redact_signature(signature: str, chars: int = 20) -> str:
    """Shorten a device signature for display, e.g. ``0123456789abcdef...``."""
    if len(signature) <= chars:
        return signature
    return f"{signature[:chars]}..."


@dataclass(frozen=True)
class FormattedAlert:
    """An alert rendered for every delivery channel.

    Attributes:
        title: Short headline.
        body: Multi-line summary.
        discord_payload: Complete Discord message body (content + embeds).
        plain_text: Plain text rendering for logs and fallback channels.
    """

    title: str
    body: str
    discord_payload: dict[str, Any]
    plain_text: str


@dataclass(frozen=True)
class CorrelationAlert:
    """Everything an operator needs to review one correlation.

    The device signature is already redacted; the raw value never leaves
    the store through an alert.
    """

    record_id: int | None
    strategy: CorrelationStrategy
    confidence_score: int
    primary_account_id: str
    alt_account_id: str
    primary_display_name: str | None = None
    primary_external_id: str | None = None
    alt_display_name: str | None = None
    alt_external_id: str | None = None
    shared_network_origin: str | None = None
    shared_device_signature: str | None = None
    match_count: int | None = None

    @classmethod
    def from_record(
        cls, record: CorrelationRecordDTO, *, signature_preview_chars: int = 20
    ) -> CorrelationAlert:
        """Build an alert from a stored correlation record.

        The account that triggered the detection is reported as the primary.
        """
        details = CorrelationDetails.from_dict(record.details)
        signature = record.device_signature
        return cls(
            record_id=record.id,
            strategy=CorrelationStrategy(record.strategy),
            confidence_score=record.confidence_score,
            primary_account_id=record.observed_account_id,
            alt_account_id=record.other_account_id,
            primary_display_name=details.primary_display_name,
            primary_external_id=details.primary_external_id,
            alt_display_name=details.alt_display_name,
            alt_external_id=details.alt_external_id,
            shared_network_origin=record.network_origin,
            shared_device_signature=(
                redact_signature(signature, signature_preview_chars) if signature else None
            ),
            match_count=details.match_count,
        )


@dataclass(frozen=True)
class BanNotice:
    """A blocked check, reported to operators."""

    account_id: str
    reason: str
    display_name: str | None = None
    external_id: str | None = None
    device_signature: str | None = None  # redacted
    propagated: bool = False


@dataclass
class DispatchResult:
    """Outcome of dispatching one alert to all channels.

    Attributes:
        success_count: Channels that accepted the alert.
        failure_count: Channels that failed.
        errors: Channel name to error message for each failure.
    """

    success_count: int = 0
    failure_count: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def delivered(self) -> bool:
        """At least one channel received the alert and none failed."""
        return self.success_count > 0 and self.failure_count == 0
