"""Detection layer - Account correlation, device registry and bans."""

from alt_account_guard.detector.bans import BanRegistry
from alt_account_guard.detector.correlator import Correlator, MatchStrategy
from alt_account_guard.detector.device_match import DeviceMatchStrategy
from alt_account_guard.detector.device_registry import DeviceRegistry
from alt_account_guard.detector.models import (
    BanVerdict,
    CorrelationDetails,
    CorrelationStrategy,
    DeviceCheckResult,
    MatchCandidate,
    ReviewStatus,
)
from alt_account_guard.detector.network_match import NetworkMatchStrategy

__all__ = [
    "BanRegistry",
    "BanVerdict",
    "CorrelationDetails",
    "CorrelationStrategy",
    "Correlator",
    "DeviceCheckResult",
    "DeviceMatchStrategy",
    "DeviceRegistry",
    "MatchCandidate",
    "MatchStrategy",
    "NetworkMatchStrategy",
    "ReviewStatus",
]
