"""SQLAlchemy models for persistent storage.

This module defines the database schema for provenance observations,
per-account device registrations, alt-account correlation records,
bans and account profiles.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Widths of client-supplied identifiers. Longer values are rejected before any write.
ACCOUNT_ID_LENGTH = 64
NETWORK_ORIGIN_LENGTH = 64
DEVICE_SIGNATURE_LENGTH = 256


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ProvenanceRecordModel(Base):
    """Append-only log of every check call (who, from where, on what device)."""

    __tablename__ = "provenance_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=False)
    network_origin: Mapped[str | None] = mapped_column(String(NETWORK_ORIGIN_LENGTH), nullable=True)
    device_signature: Mapped[str | None] = mapped_column(String(DEVICE_SIGNATURE_LENGTH), nullable=True)
    client_string: Mapped[str | None] = mapped_column(Text, nullable=True)
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_provenance_log_origin_account", "network_origin", "account_id"),
        Index("idx_provenance_log_account_ts", "account_id", "observed_at"),
    )


class DeviceRegistrationModel(Base):
    """One row per (account, device signature) pair.

    Once ``is_blocked`` is set this row is authoritative; nothing in the
    check path ever clears it.
    """

    __tablename__ = "device_registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=False)
    device_signature: Mapped[str] = mapped_column(String(DEVICE_SIGNATURE_LENGTH), nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    network_origin: Mapped[str | None] = mapped_column(String(NETWORK_ORIGIN_LENGTH), nullable=True)
    client_string: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("account_id", "device_signature", name="uq_device_registration"),
        Index("idx_device_registrations_signature", "device_signature", "is_blocked"),
    )


class CorrelationRecordModel(Base):
    """A suspected alt-account pair under one strategy.

    The pair is stored canonicalized (``account_a < account_b``) so that the
    unique constraint covers both orderings.
    """

    __tablename__ = "correlation_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_a: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=False)
    account_b: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=False)
    strategy: Mapped[str] = mapped_column(String(20), nullable=False)  # network_match|device_match
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)

    # Account whose check created the record (rendered as the primary account).
    observed_account_id: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=False)

    network_origin: Mapped[str | None] = mapped_column(String(NETWORK_ORIGIN_LENGTH), nullable=True)
    device_signature: Mapped[str | None] = mapped_column(String(DEVICE_SIGNATURE_LENGTH), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    alert_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="flagged")
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("account_a", "account_b", "strategy", name="uq_correlation_pair_strategy"),
        CheckConstraint("account_a < account_b", name="ck_correlation_pair_canonical"),
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="ck_correlation_confidence_range",
        ),
        Index("idx_correlation_records_account_a", "account_a"),
        Index("idx_correlation_records_account_b", "account_b"),
        Index("idx_correlation_records_pending", "alert_sent", "created_at"),
    )


class BanEntryModel(Base):
    """Ban issued by moderation tooling (website panel or game server)."""

    __tablename__ = "ban_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str | None] = mapped_column(String(ACCOUNT_ID_LENGTH), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="website")
    banned_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_ban_entries_account_active", "account_id", "is_active"),)


class BanDeviceSignatureModel(Base):
    """Device-signature scope of a ban (one row per signature)."""

    __tablename__ = "ban_device_signatures"

    ban_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ban_entries.id", ondelete="CASCADE"), primary_key=True
    )
    device_signature: Mapped[str] = mapped_column(String(DEVICE_SIGNATURE_LENGTH), primary_key=True)

    __table_args__ = (Index("idx_ban_device_signatures_signature", "device_signature"),)


class AccountProfileModel(Base):
    """Display identifiers for an account, maintained by the identity sync."""

    __tablename__ = "account_profiles"

    account_id: Mapped[str] = mapped_column(String(ACCOUNT_ID_LENGTH), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
