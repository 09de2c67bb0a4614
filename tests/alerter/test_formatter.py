"""Tests for the alert formatter."""

import pytest

from alt_account_guard.alerter.formatter import (
    COLOR_HIGH_RISK,
    COLOR_LOW_RISK,
    COLOR_MEDIUM_RISK,
    AlertFormatter,
    confidence_bar,
    get_risk_color,
    get_risk_level,
)
from alt_account_guard.alerter.models import BanNotice, CorrelationAlert, redact_signature
from alt_account_guard.detector.models import CorrelationStrategy
from alt_account_guard.storage.repos import CorrelationRecordDTO

SIGNATURE = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def network_alert() -> CorrelationAlert:
    return CorrelationAlert(
        record_id=1,
        strategy=CorrelationStrategy.NETWORK_MATCH,
        confidence_score=60,
        primary_account_id="a",
        alt_account_id="b",
        primary_display_name="alice",
        primary_external_id="111",
        alt_display_name="bob",
        shared_network_origin="203.0.113.7",
        match_count=2,
    )


@pytest.fixture
def device_record() -> CorrelationRecordDTO:
    return CorrelationRecordDTO(
        id=7,
        account_a="a",
        account_b="b",
        strategy="device_match",
        confidence_score=85,
        observed_account_id="a",
        device_signature=SIGNATURE,
        details={
            "shared_key": SIGNATURE,
            "primary_display_name": "alice",
            "alt_display_name": "bob",
            "alt_external_id": "222",
            "match_count": None,
        },
    )


class TestHelpers:
    """Tests for formatting helpers."""

    @pytest.mark.parametrize(
        ("score", "level", "color"),
        [(95, "HIGH", COLOR_HIGH_RISK), (80, "HIGH", COLOR_HIGH_RISK), (50, "MEDIUM", COLOR_MEDIUM_RISK), (40, "LOW", COLOR_LOW_RISK)],
    )
    def test_risk_level_and_color(self, score: int, level: str, color: int) -> None:
        assert get_risk_level(score) == level
        assert get_risk_color(score) == color

    def test_confidence_bar(self) -> None:
        assert confidence_bar(50) == "█████░░░░░"
        assert confidence_bar(85) == "█████████░"
        assert confidence_bar(100) == "██████████"
        assert confidence_bar(0) == "░░░░░░░░░░"

    def test_redact_signature(self) -> None:
        assert redact_signature(SIGNATURE) == "0123456789abcdef0123..."
        assert redact_signature("short") == "short"
        assert redact_signature(SIGNATURE, 4) == "0123..."


class TestCorrelationAlertFromRecord:
    """Tests for CorrelationAlert.from_record."""

    def test_observed_account_is_the_primary(self, device_record: CorrelationRecordDTO) -> None:
        alert = CorrelationAlert.from_record(device_record)

        assert alert.primary_account_id == "a"
        assert alert.alt_account_id == "b"
        assert alert.alt_external_id == "222"
        assert alert.strategy == CorrelationStrategy.DEVICE_MATCH

    def test_signature_is_redacted(self, device_record: CorrelationRecordDTO) -> None:
        alert = CorrelationAlert.from_record(device_record, signature_preview_chars=8)

        assert alert.shared_device_signature == "01234567..."


class TestAlertFormatter:
    """Tests for AlertFormatter."""

    def test_network_alert(self, network_alert: CorrelationAlert) -> None:
        formatted = AlertFormatter(mention_role_id="999").format_correlation(network_alert)

        assert "Network Origin Match" in formatted.title
        assert "alice" in formatted.body
        assert "203.0.113.7" in formatted.body
        assert "Match count: 2" in formatted.body
        assert formatted.plain_text.startswith(formatted.title)

        payload = formatted.discord_payload
        assert payload["content"].count("<@&999>") == 1
        assert "<@111>" in payload["content"]
        embed = payload["embeds"][0]
        assert embed["color"] == COLOR_MEDIUM_RISK
        names = [f["name"] for f in embed["fields"]]
        assert "🔁 Match Count" in names

    def test_device_alert_never_shows_full_signature(
        self, device_record: CorrelationRecordDTO
    ) -> None:
        alert = CorrelationAlert.from_record(device_record)
        formatted = AlertFormatter().format_correlation(alert)

        assert "Device Signature Match" in formatted.title
        assert SIGNATURE not in formatted.plain_text
        assert SIGNATURE not in str(formatted.discord_payload)
        assert "0123456789abcdef0123..." in formatted.body
        assert formatted.discord_payload["embeds"][0]["color"] == COLOR_HIGH_RISK

    def test_no_role_mention_when_unset(self, network_alert: CorrelationAlert) -> None:
        formatted = AlertFormatter().format_correlation(network_alert)

        assert "<@&" not in formatted.discord_payload["content"]

    def test_ban_notice(self) -> None:
        notice = BanNotice(
            account_id="c",
            reason="This device has been banned from accessing the website.",
            display_name="carol",
            device_signature="0123456789...",
            propagated=True,
        )

        formatted = AlertFormatter(mention_role_id="999").format_ban_notice(notice)

        assert "BAN ENFORCED" in formatted.title
        assert "carol" in formatted.body
        assert "inherited" in formatted.body
        assert "<@&999>" in formatted.discord_payload["content"]
        assert formatted.discord_payload["embeds"][0]["fields"][1]["value"] == notice.reason
