"""Initial schema for provenance, device registrations, correlations and bans.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Provenance log (append-only)
    op.create_table(
        "provenance_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("network_origin", sa.String(64), nullable=True),
        sa.Column("device_signature", sa.String(256), nullable=True),
        sa.Column("client_string", sa.Text(), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_provenance_log_origin_account", "provenance_log", ["network_origin", "account_id"]
    )
    op.create_index("idx_provenance_log_account_ts", "provenance_log", ["account_id", "observed_at"])

    # Device registrations
    op.create_table(
        "device_registrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("device_signature", sa.String(256), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("network_origin", sa.String(64), nullable=True),
        sa.Column("client_string", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id", "device_signature", name="uq_device_registration"),
    )
    op.create_index(
        "idx_device_registrations_signature",
        "device_registrations",
        ["device_signature", "is_blocked"],
    )

    # Correlation records (canonical pair + strategy is unique)
    op.create_table(
        "correlation_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_a", sa.String(64), nullable=False),
        sa.Column("account_b", sa.String(64), nullable=False),
        sa.Column("strategy", sa.String(20), nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=False),
        sa.Column("observed_account_id", sa.String(64), nullable=False),
        sa.Column("network_origin", sa.String(64), nullable=True),
        sa.Column("device_signature", sa.String(256), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("alert_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="flagged"),
        sa.Column("reviewed_by", sa.String(128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "account_a", "account_b", "strategy", name="uq_correlation_pair_strategy"
        ),
        sa.CheckConstraint("account_a < account_b", name="ck_correlation_pair_canonical"),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="ck_correlation_confidence_range",
        ),
    )
    op.create_index("idx_correlation_records_account_a", "correlation_records", ["account_a"])
    op.create_index("idx_correlation_records_account_b", "correlation_records", ["account_b"])
    op.create_index(
        "idx_correlation_records_pending", "correlation_records", ["alert_sent", "created_at"]
    )

    # Bans and their device-signature scope
    op.create_table(
        "ban_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(64), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("source", sa.String(20), nullable=False, server_default="website"),
        sa.Column("banned_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_ban_entries_account_active", "ban_entries", ["account_id", "is_active"])

    op.create_table(
        "ban_device_signatures",
        sa.Column("ban_id", sa.Integer(), nullable=False),
        sa.Column("device_signature", sa.String(256), nullable=False),
        sa.ForeignKeyConstraint(["ban_id"], ["ban_entries.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("ban_id", "device_signature"),
    )
    op.create_index(
        "idx_ban_device_signatures_signature", "ban_device_signatures", ["device_signature"]
    )

    # Account profiles
    op.create_table(
        "account_profiles",
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("account_id"),
    )


def downgrade() -> None:
    op.drop_table("account_profiles")
    op.drop_index("idx_ban_device_signatures_signature", table_name="ban_device_signatures")
    op.drop_table("ban_device_signatures")
    op.drop_index("idx_ban_entries_account_active", table_name="ban_entries")
    op.drop_table("ban_entries")
    op.drop_index("idx_correlation_records_pending", table_name="correlation_records")
    op.drop_index("idx_correlation_records_account_b", table_name="correlation_records")
    op.drop_index("idx_correlation_records_account_a", table_name="correlation_records")
    op.drop_table("correlation_records")
    op.drop_index("idx_device_registrations_signature", table_name="device_registrations")
    op.drop_table("device_registrations")
    op.drop_index("idx_provenance_log_account_ts", table_name="provenance_log")
    op.drop_index("idx_provenance_log_origin_account", table_name="provenance_log")
    op.drop_table("provenance_log")
