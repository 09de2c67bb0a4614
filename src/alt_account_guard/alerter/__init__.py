"""Alerter module - Formats and delivers operator notifications."""

from alt_account_guard.alerter.dispatcher import AlertChannel, AlertDeliveryError, AlertDispatcher
from alt_account_guard.alerter.formatter import AlertFormatter
from alt_account_guard.alerter.models import (
    BanNotice,
    CorrelationAlert,
    DispatchResult,
    FormattedAlert,
    redact_signature,
)
from alt_account_guard.alerter.notifier import Notifier
from alt_account_guard.alerter.sweep import resend_pending_alerts

__all__ = [
    "AlertChannel",
    "AlertDeliveryError",
    "AlertDispatcher",
    "AlertFormatter",
    "BanNotice",
    "CorrelationAlert",
    "DispatchResult",
    "FormattedAlert",
    "Notifier",
    "redact_signature",
    "resend_pending_alerts",
]
