"""Repository pattern implementations for data access.

This module provides data access abstractions for the provenance log,
device registrations, correlation records, bans and account profiles.

Writes that must be unique (device registrations, correlation pairs) go
through dialect-specific ``INSERT ... ON CONFLICT DO NOTHING`` statements so
that the losing side of a concurrent insert is rejected by the database
instead of producing a duplicate row.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from alt_account_guard.storage.models import (
    AccountProfileModel,
    BanDeviceSignatureModel,
    BanEntryModel,
    CorrelationRecordModel,
    DeviceRegistrationModel,
    ProvenanceRecordModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def canonical_pair(account_x: str, account_y: str) -> tuple[str, str]:
    """Order two account ids so an unordered pair has a single key."""
    if account_x == account_y:
        raise ValueError("A correlation pair needs two distinct accounts")
    return (account_x, account_y) if account_x < account_y else (account_y, account_x)


def _dialect_insert(session: AsyncSession, model: type[Any]) -> Any:
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


# ============================================================================
# Provenance log
# ============================================================================


@dataclass
class ProvenanceRecordDTO:
    """Data transfer object for a provenance observation."""

    account_id: str
    network_origin: str | None = None
    device_signature: str | None = None
    client_string: str | None = None
    observed_at: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: ProvenanceRecordModel) -> ProvenanceRecordDTO:
        return cls(
            id=model.id,
            account_id=model.account_id,
            network_origin=model.network_origin,
            device_signature=model.device_signature,
            client_string=model.client_string,
            observed_at=model.observed_at,
        )


class ProvenanceRepository:
    """Append-only access to the provenance log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, dto: ProvenanceRecordDTO) -> None:
        model = ProvenanceRecordModel(
            account_id=dto.account_id,
            network_origin=dto.network_origin,
            device_signature=dto.device_signature,
            client_string=dto.client_string,
            observed_at=dto.observed_at or datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()

    async def match_counts_for_origin(
        self, network_origin: str, *, exclude_account_id: str
    ) -> dict[str, int]:
        """Count provenance rows per other account sharing a network origin.

        Args:
            network_origin: Origin to match exactly.
            exclude_account_id: Account whose own rows are ignored.

        Returns:
            Mapping of account id to number of rows with that origin.
        """
        result = await self.session.execute(
            select(ProvenanceRecordModel.account_id, func.count())
            .where(
                (ProvenanceRecordModel.network_origin == network_origin)
                & (ProvenanceRecordModel.account_id != exclude_account_id)
            )
            .group_by(ProvenanceRecordModel.account_id)
            .order_by(ProvenanceRecordModel.account_id)
        )
        return {account_id: int(count) for account_id, count in result.all()}

    async def list_for_account(self, account_id: str, *, limit: int = 100) -> list[ProvenanceRecordDTO]:
        result = await self.session.execute(
            select(ProvenanceRecordModel)
            .where(ProvenanceRecordModel.account_id == account_id)
            .order_by(ProvenanceRecordModel.observed_at.desc(), ProvenanceRecordModel.id.desc())
            .limit(limit)
        )
        return [ProvenanceRecordDTO.from_model(m) for m in result.scalars().all()]


# ============================================================================
# Device registrations
# ============================================================================


@dataclass
class DeviceRegistrationDTO:
    """Data transfer object for an (account, device signature) registration."""

    account_id: str
    device_signature: str
    is_blocked: bool = False
    network_origin: str | None = None
    client_string: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: DeviceRegistrationModel) -> DeviceRegistrationDTO:
        return cls(
            account_id=model.account_id,
            device_signature=model.device_signature,
            is_blocked=model.is_blocked,
            network_origin=model.network_origin,
            client_string=model.client_string,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class DeviceRegistrationRepository:
    """Repository for device registrations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _key(self, account_id: str, device_signature: str) -> Any:
        return (DeviceRegistrationModel.account_id == account_id) & (
            DeviceRegistrationModel.device_signature == device_signature
        )

    async def get(self, account_id: str, device_signature: str) -> DeviceRegistrationDTO | None:
        result = await self.session.execute(
            select(DeviceRegistrationModel).where(self._key(account_id, device_signature))
        )
        model = result.scalar_one_or_none()
        return DeviceRegistrationDTO.from_model(model) if model else None

    async def insert_if_absent(self, dto: DeviceRegistrationDTO) -> bool:
        """Insert a registration unless the (account, signature) row exists.

        Returns:
            True if this call inserted the row, False if another writer won.
        """
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, DeviceRegistrationModel).values(
            account_id=dto.account_id,
            device_signature=dto.device_signature,
            is_blocked=dto.is_blocked,
            network_origin=dto.network_origin,
            client_string=dto.client_string,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["account_id", "device_signature"]
        ).returning(DeviceRegistrationModel.id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def refresh(
        self,
        account_id: str,
        device_signature: str,
        *,
        network_origin: str | None,
        client_string: str | None,
    ) -> None:
        await self.session.execute(
            update(DeviceRegistrationModel)
            .where(self._key(account_id, device_signature))
            .values(
                network_origin=network_origin,
                client_string=client_string,
                updated_at=datetime.now(UTC),
            )
        )

    async def touch(self, account_id: str, device_signature: str) -> None:
        await self.session.execute(
            update(DeviceRegistrationModel)
            .where(self._key(account_id, device_signature))
            .values(updated_at=datetime.now(UTC))
        )

    async def mark_blocked(self, account_id: str, device_signature: str) -> bool:
        """Block one registration. Returns False if no such row exists."""
        result = await self.session.execute(
            update(DeviceRegistrationModel)
            .where(self._key(account_id, device_signature))
            .values(is_blocked=True, updated_at=datetime.now(UTC))
        )
        return bool(result.rowcount)

    async def block_all_for_account(self, account_id: str) -> int:
        """Mark every registration of an account as blocked.

        Returns:
            Number of rows updated.
        """
        result = await self.session.execute(
            update(DeviceRegistrationModel)
            .where(DeviceRegistrationModel.account_id == account_id)
            .values(is_blocked=True, updated_at=datetime.now(UTC))
        )
        return int(result.rowcount or 0)

    async def has_blocked_signature(
        self, device_signature: str, *, exclude_account_id: str | None = None
    ) -> bool:
        stmt = select(DeviceRegistrationModel.id).where(
            (DeviceRegistrationModel.device_signature == device_signature)
            & (DeviceRegistrationModel.is_blocked.is_(True))
        )
        if exclude_account_id is not None:
            stmt = stmt.where(DeviceRegistrationModel.account_id != exclude_account_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def accounts_sharing_signature(
        self, device_signature: str, *, exclude_account_id: str
    ) -> list[str]:
        result = await self.session.execute(
            select(DeviceRegistrationModel.account_id)
            .where(
                (DeviceRegistrationModel.device_signature == device_signature)
                & (DeviceRegistrationModel.account_id != exclude_account_id)
            )
            .distinct()
            .order_by(DeviceRegistrationModel.account_id)
        )
        return [row[0] for row in result.all()]

    async def signatures_for_account(self, account_id: str) -> list[str]:
        result = await self.session.execute(
            select(DeviceRegistrationModel.device_signature)
            .where(DeviceRegistrationModel.account_id == account_id)
            .order_by(DeviceRegistrationModel.device_signature)
        )
        return [row[0] for row in result.all()]


# ============================================================================
# Correlation records
# ============================================================================


@dataclass
class CorrelationRecordDTO:
    """Data transfer object for a correlation record.

    ``account_a``/``account_b`` are always stored canonicalized; use
    ``observed_account_id`` to know which side triggered the detection.
    """

    account_a: str
    account_b: str
    strategy: str
    confidence_score: int
    observed_account_id: str
    network_origin: str | None = None
    device_signature: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    alert_sent: bool = False
    status: str = "flagged"
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    id: int | None = None

    @property
    def other_account_id(self) -> str:
        """The account on the opposite side of ``observed_account_id``."""
        return self.account_b if self.observed_account_id == self.account_a else self.account_a

    @classmethod
    def from_model(cls, model: CorrelationRecordModel) -> CorrelationRecordDTO:
        return cls(
            id=model.id,
            account_a=model.account_a,
            account_b=model.account_b,
            strategy=model.strategy,
            confidence_score=model.confidence_score,
            observed_account_id=model.observed_account_id,
            network_origin=model.network_origin,
            device_signature=model.device_signature,
            details=dict(model.details or {}),
            alert_sent=model.alert_sent,
            status=model.status,
            reviewed_by=model.reviewed_by,
            reviewed_at=model.reviewed_at,
            created_at=model.created_at,
        )


class CorrelationRepository:
    """Repository for deduplicated correlation records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, record_id: int) -> CorrelationRecordDTO | None:
        result = await self.session.execute(
            select(CorrelationRecordModel).where(CorrelationRecordModel.id == record_id)
        )
        model = result.scalar_one_or_none()
        return CorrelationRecordDTO.from_model(model) if model else None

    async def exists(self, account_x: str, account_y: str, strategy: str) -> bool:
        account_a, account_b = canonical_pair(account_x, account_y)
        result = await self.session.execute(
            select(CorrelationRecordModel.id)
            .where(
                (CorrelationRecordModel.account_a == account_a)
                & (CorrelationRecordModel.account_b == account_b)
                & (CorrelationRecordModel.strategy == strategy)
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def insert_if_absent(self, dto: CorrelationRecordDTO) -> CorrelationRecordDTO | None:
        """Insert a record unless one exists for the pair and strategy.

        Args:
            dto: Record to insert; the pair is canonicalized here.

        Returns:
            The inserted record with its id, or None when the unique
            constraint rejected the insert (another writer got there first).
        """
        account_a, account_b = canonical_pair(dto.account_a, dto.account_b)
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, CorrelationRecordModel).values(
            account_a=account_a,
            account_b=account_b,
            strategy=dto.strategy,
            confidence_score=dto.confidence_score,
            observed_account_id=dto.observed_account_id,
            network_origin=dto.network_origin,
            device_signature=dto.device_signature,
            details=dto.details,
            alert_sent=False,
            status=dto.status,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["account_a", "account_b", "strategy"]
        ).returning(CorrelationRecordModel.id)
        result = await self.session.execute(stmt)
        record_id = result.scalar_one_or_none()
        if record_id is None:
            logger.debug(
                "Correlation insert rejected as duplicate: %s/%s (%s)",
                account_a,
                account_b,
                dto.strategy,
            )
            return None
        return CorrelationRecordDTO(
            id=record_id,
            account_a=account_a,
            account_b=account_b,
            strategy=dto.strategy,
            confidence_score=dto.confidence_score,
            observed_account_id=dto.observed_account_id,
            network_origin=dto.network_origin,
            device_signature=dto.device_signature,
            details=dict(dto.details),
            alert_sent=False,
            status=dto.status,
            created_at=now,
        )

    async def mark_alert_sent(self, record_id: int) -> bool:
        """Flip ``alert_sent`` to true. Returns False if it was already set."""
        result = await self.session.execute(
            update(CorrelationRecordModel)
            .where(
                (CorrelationRecordModel.id == record_id)
                & (CorrelationRecordModel.alert_sent.is_(False))
            )
            .values(alert_sent=True)
        )
        return bool(result.rowcount)

    async def list_pending_alerts(
        self, *, limit: int, created_before: datetime | None = None
    ) -> list[CorrelationRecordDTO]:
        stmt = select(CorrelationRecordModel).where(CorrelationRecordModel.alert_sent.is_(False))
        if created_before is not None:
            stmt = stmt.where(CorrelationRecordModel.created_at <= created_before)
        result = await self.session.execute(
            stmt.order_by(CorrelationRecordModel.created_at, CorrelationRecordModel.id)
            .limit(limit)
        )
        return [CorrelationRecordDTO.from_model(m) for m in result.scalars().all()]

    async def list_for_account(self, account_id: str) -> list[CorrelationRecordDTO]:
        result = await self.session.execute(
            select(CorrelationRecordModel)
            .where(
                (CorrelationRecordModel.account_a == account_id)
                | (CorrelationRecordModel.account_b == account_id)
            )
            .order_by(CorrelationRecordModel.created_at.desc(), CorrelationRecordModel.id.desc())
        )
        return [CorrelationRecordDTO.from_model(m) for m in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(CorrelationRecordModel))
        return int(result.scalar_one())

    async def set_status(self, record_id: int, *, status: str, reviewed_by: str | None) -> bool:
        result = await self.session.execute(
            update(CorrelationRecordModel)
            .where(CorrelationRecordModel.id == record_id)
            .values(status=status, reviewed_by=reviewed_by, reviewed_at=datetime.now(UTC))
        )
        return bool(result.rowcount)


# ============================================================================
# Bans
# ============================================================================


@dataclass
class BanEntryDTO:
    """Data transfer object for a ban entry."""

    reason: str | None
    account_id: str | None = None
    is_active: bool = True
    source: str = "website"
    banned_by: str | None = None
    device_signatures: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: BanEntryModel) -> BanEntryDTO:
        return cls(
            id=model.id,
            account_id=model.account_id,
            reason=model.reason,
            is_active=model.is_active,
            source=model.source,
            banned_by=model.banned_by,
            created_at=model.created_at,
        )


class BanRepository:
    """Repository for bans and their device-signature scope."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_active_account_ban(self, account_id: str) -> BanEntryDTO | None:
        result = await self.session.execute(
            select(BanEntryModel)
            .where((BanEntryModel.account_id == account_id) & (BanEntryModel.is_active.is_(True)))
            .order_by(BanEntryModel.created_at.desc(), BanEntryModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return BanEntryDTO.from_model(model) if model else None

    async def find_active_device_ban(self, device_signatures: Iterable[str]) -> BanEntryDTO | None:
        signatures = sorted(set(device_signatures))
        if not signatures:
            return None
        result = await self.session.execute(
            select(BanEntryModel)
            .join(BanDeviceSignatureModel, BanDeviceSignatureModel.ban_id == BanEntryModel.id)
            .where(
                (BanEntryModel.is_active.is_(True))
                & (BanDeviceSignatureModel.device_signature.in_(signatures))
            )
            .order_by(BanEntryModel.created_at.desc(), BanEntryModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return BanEntryDTO.from_model(model) if model else None

    async def create(self, dto: BanEntryDTO) -> BanEntryDTO:
        model = BanEntryModel(
            account_id=dto.account_id,
            reason=dto.reason,
            is_active=dto.is_active,
            source=dto.source,
            banned_by=dto.banned_by,
            created_at=datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()

        signatures = sorted(set(dto.device_signatures))
        for signature in signatures:
            self.session.add(BanDeviceSignatureModel(ban_id=model.id, device_signature=signature))
        await self.session.flush()

        created = BanEntryDTO.from_model(model)
        created.device_signatures = signatures
        return created

    async def get_device_signatures(self, ban_id: int) -> list[str]:
        result = await self.session.execute(
            select(BanDeviceSignatureModel.device_signature)
            .where(BanDeviceSignatureModel.ban_id == ban_id)
            .order_by(BanDeviceSignatureModel.device_signature)
        )
        return [row[0] for row in result.all()]


# ============================================================================
# Account profiles
# ============================================================================


@dataclass
class AccountProfileDTO:
    """Display identifiers for an account."""

    account_id: str
    display_name: str | None = None
    external_id: str | None = None

    @classmethod
    def from_model(cls, model: AccountProfileModel) -> AccountProfileDTO:
        return cls(
            account_id=model.account_id,
            display_name=model.display_name,
            external_id=model.external_id,
        )


class AccountProfileRepository:
    """Read access to account profiles, plus the upsert used by identity sync."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_many(self, account_ids: Sequence[str]) -> dict[str, AccountProfileDTO]:
        if not account_ids:
            return {}
        result = await self.session.execute(
            select(AccountProfileModel).where(AccountProfileModel.account_id.in_(list(account_ids)))
        )
        return {m.account_id: AccountProfileDTO.from_model(m) for m in result.scalars().all()}

    async def upsert(self, dto: AccountProfileDTO) -> None:
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, AccountProfileModel).values(
            account_id=dto.account_id,
            display_name=dto.display_name,
            external_id=dto.external_id,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id"],
            set_={
                "display_name": stmt.excluded.display_name,
                "external_id": stmt.excluded.external_id,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
