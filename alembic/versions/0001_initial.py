"""meets, auctions, wallets and lifecycle audit log

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("creator_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("winning_bid_id", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_creator_id", "events", ["creator_id"], unique=False)

    op.create_table(
        "bids",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("fan_id", sa.String(length=36), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("refund_amount", sa.Integer(), nullable=True),
        sa.Column("refund_status", sa.String(length=20), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_bid_amount_non_negative"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bids_event_id", "bids", ["event_id"], unique=False)
    op.create_index("ix_bids_fan_id", "bids", ["fan_id"], unique=False)
    op.create_index("ix_bids_event_status_amount", "bids", ["event_id", "status", "amount"], unique=False)

    op.create_table(
        "meets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("creator_id", sa.String(length=36), nullable=False),
        sa.Column("fan_id", sa.String(length=36), nullable=False),
        sa.Column("meeting_link", sa.String(length=1200), nullable=True),
        sa.Column("creator_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("creator_joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fan_joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recording_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recording_stopped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=64), nullable=True),
        sa.Column("refund_id", sa.String(length=120), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("duration_minutes > 0", name="ck_meet_duration_positive"),
        sa.CheckConstraint(
            "status in ('scheduled','live','completed','cancelled_no_show_creator','cancelled')",
            name="ck_meet_status",
        ),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_meets_event_id", "meets", ["event_id"], unique=False)
    op.create_index("ix_meets_creator_id", "meets", ["creator_id"], unique=False)
    op.create_index("ix_meets_fan_id", "meets", ["fan_id"], unique=False)
    op.create_index("ix_meets_status_scheduled_at", "meets", ["status", "scheduled_at"], unique=False)

    op.create_table(
        "meeting_event_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("meet_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["meet_id"], ["meets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_meeting_event_logs_meet_timestamp",
        "meeting_event_logs",
        ["meet_id", "timestamp"],
        unique=False,
    )

    op.create_table(
        "wallets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"], unique=True)

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("wallet_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("direction", sa.String(length=12), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("commission_amount", sa.Integer(), nullable=False),
        sa.Column("commission_type", sa.String(length=40), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("reference_table", sa.String(length=40), nullable=True),
        sa.Column("reference_id", sa.String(length=120), nullable=True),
        sa.Column("available_for_withdrawal_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_wallet_transaction_amount_non_negative"),
        sa.CheckConstraint("commission_amount >= 0", name="ck_wallet_transaction_commission_non_negative"),
        sa.CheckConstraint("direction in ('credit','debit')", name="ck_wallet_transaction_direction"),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "wallet_id",
            "type",
            "reference_table",
            "reference_id",
            name="uq_wallet_transaction_reference",
        ),
    )
    op.create_index("ix_wallet_transactions_wallet_id", "wallet_transactions", ["wallet_id"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.String(length=1000), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_wallet_transactions_wallet_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_index("ix_wallets_user_id", table_name="wallets")
    op.drop_table("wallets")

    op.drop_index("ix_meeting_event_logs_meet_timestamp", table_name="meeting_event_logs")
    op.drop_table("meeting_event_logs")

    op.drop_index("ix_meets_status_scheduled_at", table_name="meets")
    op.drop_index("ix_meets_fan_id", table_name="meets")
    op.drop_index("ix_meets_creator_id", table_name="meets")
    op.drop_index("ix_meets_event_id", table_name="meets")
    op.drop_table("meets")

    op.drop_index("ix_bids_event_status_amount", table_name="bids")
    op.drop_index("ix_bids_fan_id", table_name="bids")
    op.drop_index("ix_bids_event_id", table_name="bids")
    op.drop_table("bids")

    op.drop_index("ix_events_creator_id", table_name="events")
    op.drop_table("events")
