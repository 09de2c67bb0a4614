"""Alert message formatter for operator notifications.

This module turns correlation alerts and ban notices into human-readable
messages: a Discord message payload and a plain text rendering.
"""

from __future__ import annotations

from datetime import UTC, datetime

from alt_account_guard.alerter.models import BanNotice, CorrelationAlert, FormattedAlert
from alt_account_guard.detector.models import CorrelationStrategy

# Discord embed colors (decimal values)
COLOR_HIGH_RISK = 0xED4245  # Red
COLOR_MEDIUM_RISK = 0xFEE75C  # Yellow
COLOR_LOW_RISK = 0x57F287  # Green
COLOR_BAN = 0x000000

# Confidence thresholds (percent)
HIGH_RISK_THRESHOLD = 80
MEDIUM_RISK_THRESHOLD = 50

CONFIDENCE_BAR_WIDTH = 10
BLANK = "\u200b"
DEFAULT_FOOTER = "Alt-Account Guard"


def get_risk_level(confidence: int) -> str:
    """Get human-readable risk level from a confidence score."""
    if confidence >= HIGH_RISK_THRESHOLD:
        return "HIGH"
    if confidence >= MEDIUM_RISK_THRESHOLD:
        return "MEDIUM"
    return "LOW"


def get_risk_color(confidence: int) -> int:
    """Get Discord embed color based on confidence."""
    if confidence >= HIGH_RISK_THRESHOLD:
        return COLOR_HIGH_RISK
    if confidence >= MEDIUM_RISK_THRESHOLD:
        return COLOR_MEDIUM_RISK
    return COLOR_LOW_RISK


def confidence_bar(confidence: int) -> str:
    """Render a confidence score as a ten-block bar, e.g. ``█████░░░░░``."""
    filled = max(0, min(CONFIDENCE_BAR_WIDTH, int(confidence / 10 + 0.5)))
    return "█" * filled + "░" * (CONFIDENCE_BAR_WIDTH - filled)


def describe_account(account_id: str, display_name: str | None, external_id: str | None) -> str:
    """Describe an account by display name, falling back to its id."""
    label = f"`{display_name or account_id}`"
    if external_id:
        return f"<@{external_id}>\n{label}"
    return label


class AlertFormatter:
    """Formats correlation alerts and ban notices.

    Args:
        mention_role_id: Discord role pinged on every message, if any.
        footer_text: Footer shown on every embed.
    """

    def __init__(
        self,
        *,
        mention_role_id: str | None = None,
        footer_text: str = DEFAULT_FOOTER,
    ) -> None:
        self.mention_role_id = mention_role_id
        self.footer_text = footer_text

    def format_correlation(self, alert: CorrelationAlert) -> FormattedAlert:
        """Format a correlation alert.

        Args:
            alert: The correlation to report.

        Returns:
            FormattedAlert with all channel formats.
        """
        is_network = alert.strategy == CorrelationStrategy.NETWORK_MATCH
        risk_level = get_risk_level(alert.confidence_score)
        shared_label = "network origin" if is_network else "device signature"
        shared_value = (
            alert.shared_network_origin if is_network else alert.shared_device_signature
        ) or "hidden"

        title = (
            "🌐 ALT-ACCOUNT DETECTED - Network Origin Match"
            if is_network
            else "🖥️ ALT-ACCOUNT DETECTED - Device Signature Match"
        )

        primary = alert.primary_display_name or alert.primary_account_id
        alt = alert.alt_display_name or alert.alt_account_id
        lines = [
            f"Primary account: {primary} ({alert.primary_account_id})",
            f"Suspected alt: {alt} ({alert.alt_account_id})",
            f"Confidence: {alert.confidence_score}% ({risk_level})",
            f"Shared {shared_label}: {shared_value}",
        ]
        if is_network and alert.match_count:
            lines.append(f"Match count: {alert.match_count}")
        body = "\n".join(lines)

        fields: list[dict[str, object]] = [
            {
                "name": "👤 Primary Account",
                "value": describe_account(
                    alert.primary_account_id, alert.primary_display_name, alert.primary_external_id
                ),
                "inline": True,
            },
            {
                "name": "⚠️ Suspected Alt",
                "value": describe_account(
                    alert.alt_account_id, alert.alt_display_name, alert.alt_external_id
                ),
                "inline": True,
            },
            {"name": BLANK, "value": BLANK, "inline": True},
            {
                "name": "📊 Confidence Level",
                "value": (
                    f"`{confidence_bar(alert.confidence_score)}` "
                    f"**{alert.confidence_score}%**\n{risk_level} RISK"
                ),
                "inline": True,
            },
            {
                "name": "🌐 Shared Network Origin" if is_network else "🖥️ Shared Device Signature",
                "value": f"`{shared_value}`",
                "inline": True,
            },
        ]
        if is_network and alert.match_count:
            fields.append(
                {
                    "name": "🔁 Match Count",
                    "value": f"**{alert.match_count}** shared login(s)",
                    "inline": True,
                }
            )

        embed: dict[str, object] = {
            "title": title,
            "description": (
                f"Two accounts have been flagged sharing the same **{shared_label}**. "
                "Review is recommended."
            ),
            "color": get_risk_color(alert.confidence_score),
            "fields": fields,
            "footer": {"text": self.footer_text},
            "timestamp": datetime.now(UTC).isoformat(),
        }

        mentions = self._role_mention()
        for external_id in (alert.primary_external_id, alert.alt_external_id):
            if external_id:
                mentions.append(f"<@{external_id}>")
        content = "🚨 **ALT-ACCOUNT ALERT**"
        if mentions:
            content = f"{content} - {' '.join(mentions)}"

        return FormattedAlert(
            title=title,
            body=body,
            discord_payload={"content": content, "embeds": [embed]},
            plain_text=f"{title}\n{body}",
        )

    def format_ban_notice(self, notice: BanNotice) -> FormattedAlert:
        """Format a ban-enforcement notice for a blocked check."""
        title = "🔨 BAN ENFORCED - Access Blocked"
        who = notice.display_name or notice.account_id
        lines = [
            f"Account: {who} ({notice.account_id})",
            f"Reason: {notice.reason}",
        ]
        if notice.device_signature:
            lines.append(f"Device signature: {notice.device_signature}")
        if notice.propagated:
            lines.append("Block inherited from another account on the same device")
        body = "\n".join(lines)

        fields: list[dict[str, object]] = [
            {
                "name": "👤 Blocked Account",
                "value": describe_account(notice.account_id, notice.display_name, notice.external_id),
                "inline": True,
            },
            {"name": "📋 Reason", "value": notice.reason, "inline": True},
        ]
        if notice.device_signature:
            fields.append(
                {
                    "name": "🖥️ Device Signature",
                    "value": f"`{notice.device_signature}`",
                    "inline": False,
                }
            )
        if notice.propagated:
            fields.append(
                {
                    "name": "🛡️ Enforcement",
                    "value": "Device block propagated from another account.",
                    "inline": False,
                }
            )

        embed: dict[str, object] = {
            "title": title,
            "description": "A check was **denied** because of an active ban.",
            "color": COLOR_BAN,
            "fields": fields,
            "footer": {"text": self.footer_text},
            "timestamp": datetime.now(UTC).isoformat(),
        }

        content = "🔨 **BAN ENFORCED**"
        mentions = self._role_mention()
        if mentions:
            content = f"{content} - {' '.join(mentions)}"

        return FormattedAlert(
            title=title,
            body=body,
            discord_payload={"content": content, "embeds": [embed]},
            plain_text=f"{title}\n{body}",
        )

    def _role_mention(self) -> list[str]:
        return [f"<@&{self.mention_role_id}>"] if self.mention_role_id else []
