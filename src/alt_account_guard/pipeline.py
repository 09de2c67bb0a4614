"""Check pipeline orchestrator for the alt-account guard.

This module provides the CheckPipeline class that wires together the
provenance log, device registry, correlator and ban registry, and runs the
per-request check that decides whether an account is blocked.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from alt_account_guard.alerter.channels.discord import DiscordChannel
from alt_account_guard.alerter.dispatcher import AlertChannel, AlertDispatcher
from alt_account_guard.alerter.formatter import AlertFormatter
from alt_account_guard.alerter.notifier import Notifier
from alt_account_guard.alerter.sweep import resend_pending_alerts
from alt_account_guard.config import Settings, get_settings
from alt_account_guard.detector.bans import BanRegistry
from alt_account_guard.detector.correlator import Correlator
from alt_account_guard.detector.device_match import DeviceMatchStrategy
from alt_account_guard.detector.device_registry import DeviceRegistry
from alt_account_guard.detector.models import DEFAULT_BAN_REASON, DEVICE_BAN_REASON
from alt_account_guard.detector.network_match import NetworkMatchStrategy
from alt_account_guard.storage.database import DatabaseManager
from alt_account_guard.storage.models import (
    ACCOUNT_ID_LENGTH,
    DEVICE_SIGNATURE_LENGTH,
    NETWORK_ORIGIN_LENGTH,
)
from alt_account_guard.storage.repos import CorrelationRecordDTO, ProvenanceRecordDTO, ProvenanceRepository

logger = logging.getLogger(__name__)

STORE_ERRORS = (SQLAlchemyError, OSError)


class InvalidInputError(ValueError):
    """Raised when a check request is malformed."""


class StoreUnavailableError(RuntimeError):
    """Raised when the durable store cannot serve a check."""


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


_FIELD_LIMITS = (
    ("account_id", ACCOUNT_ID_LENGTH),
    ("network_origin", NETWORK_ORIGIN_LENGTH),
    ("device_signature", DEVICE_SIGNATURE_LENGTH),
)


def _validate_lengths(request: CheckRequest) -> None:
    for name, limit in _FIELD_LIMITS:
        value = getattr(request, name)
        if value is not None and len(value) > limit:
            raise InvalidInputError(f"{name} must be at most {limit} characters")


@dataclass(frozen=True)
class CheckRequest:
    """One check call from the client."""

    account_id: str | None
    network_origin: str | None = None
    device_signature: str | None = None
    client_string: str | None = None

    def normalized(self) -> CheckRequest:
        """Trim whitespace and turn blank strings into None."""
        return CheckRequest(
            account_id=_clean(self.account_id),
            network_origin=_clean(self.network_origin),
            device_signature=_clean(self.device_signature),
            client_string=_clean(self.client_string),
        )


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a check call."""

    blocked: bool
    new_correlations: int = 0
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"blocked": self.blocked, "new_correlations": self.new_correlations}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class CheckPipeline:
    """Runs the alt-account check for each request.

    Check flow:
        Provenance Log → Device Registry → Correlator (network, device) → Ban Registry

    Every step runs in its own short transaction. Nothing is kept in memory
    between checks; concurrent checks coordinate only through the store's
    unique constraints.

    Example:
        ```python
        from alt_account_guard.config import get_settings
        from alt_account_guard.pipeline import CheckPipeline, CheckRequest

        async with CheckPipeline(get_settings()) as pipeline:
            result = await pipeline.check(
                CheckRequest(account_id="user-1", network_origin="203.0.113.7")
            )
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        db: DatabaseManager | None = None,
        channels: Sequence[AlertChannel] | None = None,
        dry_run: bool | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            db: Pre-built database manager. If not provided, one is created
                from settings on start() and disposed on stop().
            channels: Alert channels. If not provided, built from settings.
            dry_run: If True, skip sending alerts. Overrides settings.dry_run.
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run
        self._channels = list(channels) if channels is not None else None

        self._state = PipelineState.STOPPED
        self._owns_db = db is None
        self._db_manager: DatabaseManager | None = db

        # Components (initialized in start())
        self._dispatcher: AlertDispatcher | None = None
        self._notifier: Notifier | None = None
        self._device_registry: DeviceRegistry | None = None
        self._correlator: Correlator | None = None
        self._ban_registry: BanRegistry | None = None

        correlation = self._settings.correlation
        self._network_strategy = NetworkMatchStrategy(
            base_confidence=correlation.network_base_confidence,
            step_confidence=correlation.network_step_confidence,
            max_confidence=correlation.network_max_confidence,
        )
        self._device_strategy = DeviceMatchStrategy(confidence=correlation.device_confidence)

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PipelineState.RUNNING

    @property
    def notifier(self) -> Notifier | None:
        return self._notifier

    async def start(self) -> None:
        """Create the database manager and alert channels.

        Raises:
            RuntimeError: If pipeline is already running.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        logger.info("Starting check pipeline...")

        try:
            await self._initialize_components()
            self._state = PipelineState.RUNNING
            logger.info("Check pipeline started")
        except Exception as e:
            self._state = PipelineState.ERROR
            logger.error("Failed to start check pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Release database connections and channel clients."""
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping check pipeline...")
        await self._cleanup()
        self._state = PipelineState.STOPPED
        logger.info("Check pipeline stopped")

    async def _initialize_components(self) -> None:
        settings = self._settings

        if self._db_manager is None:
            self._db_manager = DatabaseManager(
                settings.database.url,
                pool_size=settings.database.pool_size,
                max_overflow=settings.database.max_overflow,
            )
        if self._db_manager.is_sqlite:
            # Local runs without migrations.
            await self._db_manager.init_schema_async()
        db = self._db_manager

        channels = self._channels if self._channels is not None else self._build_alert_channels()
        self._dispatcher = AlertDispatcher(channels)
        self._notifier = Notifier(
            db,
            self._dispatcher,
            formatter=AlertFormatter(mention_role_id=settings.discord.admin_role_id),
            dry_run=self._dry_run,
            signature_preview_chars=settings.alerts.signature_preview_chars,
        )
        self._device_registry = DeviceRegistry(db)
        self._correlator = Correlator(db, self._notifier)
        self._ban_registry = BanRegistry(db)
        logger.info("All components initialized")

    def _build_alert_channels(self) -> list[AlertChannel]:
        """Build list of enabled alert channels."""
        channels: list[AlertChannel] = []
        if self._settings.discord.enabled:
            channels.append(DiscordChannel(self._settings.discord))
            logger.info("Discord channel enabled")

        if not channels:
            logger.warning("No alert channels configured")
        return channels

    async def _cleanup(self) -> None:
        if self._dispatcher is not None:
            await self._dispatcher.aclose()
            self._dispatcher = None

        if self._db_manager is not None and self._owns_db:
            await self._db_manager.dispose_async()
            self._db_manager = None

        logger.debug("Resources cleaned up")

    async def check(self, request: CheckRequest) -> CheckResult:
        """Run one check.

        Args:
            request: The client's observation.

        Returns:
            CheckResult telling whether the account is blocked.

        Raises:
            InvalidInputError: If account_id is missing or blank, or a field is too long.
            StoreUnavailableError: If the store fails after the provenance write.
            RuntimeError: If the pipeline is not running.
        """
        request = request.normalized()
        if request.account_id is None:
            raise InvalidInputError("account_id is required")
        _validate_lengths(request)
        if not self.is_running:
            raise RuntimeError(f"Cannot run checks in state {self._state}")

        db = self._db_manager
        device_registry = self._device_registry
        correlator = self._correlator
        ban_registry = self._ban_registry
        if db is None or device_registry is None or correlator is None or ban_registry is None:
            raise RuntimeError("Pipeline components are not initialized")

        account_id = request.account_id
        await self._append_provenance(db, account_id, request)

        try:
            if request.device_signature:
                device = await device_registry.upsert(
                    account_id,
                    request.device_signature,
                    network_origin=request.network_origin,
                    client_string=request.client_string,
                )
                if device.blocked:
                    logger.info("Check blocked for account %s: device is banned", account_id)
                    await self._notify_block(
                        account_id,
                        DEVICE_BAN_REASON,
                        device_signature=request.device_signature,
                        propagated=device.propagated,
                    )
                    return CheckResult(blocked=True, reason=DEVICE_BAN_REASON)

            created: list[CorrelationRecordDTO] = []
            if request.network_origin:
                created += await correlator.correlate(
                    account_id,
                    request.network_origin,
                    self._network_strategy,
                    network_origin=request.network_origin,
                    device_signature=request.device_signature,
                )
            if request.device_signature:
                created += await correlator.correlate(
                    account_id,
                    request.device_signature,
                    self._device_strategy,
                    network_origin=request.network_origin,
                    device_signature=request.device_signature,
                )

            verdict = await ban_registry.check_account(account_id, request.device_signature)
        except STORE_ERRORS as e:
            logger.error("Store unavailable while checking account %s: %s", account_id, e)
            raise StoreUnavailableError(f"Store unavailable: {e}") from e

        if verdict.banned:
            reason = verdict.reason or DEFAULT_BAN_REASON
            logger.info("Check blocked for account %s: active ban %s", account_id, verdict.ban_id)
            await self._notify_block(account_id, reason, device_signature=request.device_signature)
            return CheckResult(blocked=True, reason=reason, new_correlations=len(created))

        return CheckResult(blocked=False, new_correlations=len(created))

    async def _append_provenance(
        self, db: DatabaseManager, account_id: str, request: CheckRequest
    ) -> None:
        try:
            async with db.get_async_session() as session:
                await ProvenanceRepository(session).append(
                    ProvenanceRecordDTO(
                        account_id=account_id,
                        network_origin=request.network_origin,
                        device_signature=request.device_signature,
                        client_string=request.client_string,
                    )
                )
        except STORE_ERRORS as e:
            logger.warning("Failed to append provenance for account %s: %s", account_id, e)

    async def _notify_block(
        self,
        account_id: str,
        reason: str,
        *,
        device_signature: str | None,
        propagated: bool = False,
    ) -> None:
        if self._notifier is None or not self._settings.alerts.notify_on_block:
            return
        await self._notifier.notify_block(
            account_id, reason, device_signature=device_signature, propagated=propagated
        )

    async def resend_pending_alerts(self, limit: int | None = None) -> int:
        """Retry undelivered correlation alerts.

        Returns:
            Number of alerts delivered.
        """
        if not self.is_running or self._db_manager is None or self._notifier is None:
            raise RuntimeError(f"Cannot resend alerts in state {self._state}")
        batch = limit if limit is not None else self._settings.alerts.resend_batch_size
        return await resend_pending_alerts(
            self._db_manager,
            self._notifier,
            limit=batch,
            min_age_seconds=self._settings.alerts.resend_min_age_seconds,
        )

    async def __aenter__(self) -> CheckPipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
