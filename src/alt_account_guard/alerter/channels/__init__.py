"""Alert delivery channels."""

from alt_account_guard.alerter.channels.discord import DiscordChannel

__all__ = ["DiscordChannel"]
