"""Create ledger tables.

Revision ID: c7d8e9f0a1b2
Revises:
Create Date: 2026-03-02 09:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision = "c7d8e9f0a1b2"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    """Create account, spend log, reset audit, subscription mirror, event markers and prices.

    The balance invariant lives in the database as well as in the service:
    credits_remaining can never be stored below zero.
    """
    op.create_table(
        "account",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("tier", sa.String(32), nullable=False),
        sa.Column("subscription_status", sa.String(32), nullable=False),
        sa.Column("credits_remaining", sa.Integer(), nullable=False),
        sa.Column("credit_limit", sa.Integer(), nullable=False),
        sa.Column("billing_customer_ref", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("credits_remaining >= 0", name="ck_account_credits_non_negative"),
        sa.CheckConstraint("credit_limit > 0", name="ck_account_credit_limit_positive"),
        sa.UniqueConstraint("billing_customer_ref", name="uq_account_billing_customer_ref"),
    )
    op.create_index("idx_account_tier", "account", ["tier"])

    op.create_table(
        "spend_entry",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("action_type", sa.String(100), nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("credits_used > 0", name="ck_spend_entry_credits_positive"),
        sa.ForeignKeyConstraint(
            ["account_id"], ["account.id"], name="fk_spend_entry_account_id", ondelete="RESTRICT"
        ),
    )
    # Recent-entries listing and per-period statistics
    op.create_index(
        "idx_spend_entry_account_created", "spend_entry", ["account_id", "created_at"]
    )

    op.create_table(
        "credit_reset",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("tier", sa.String(32), nullable=False),
        sa.Column("credit_limit", sa.Integer(), nullable=False),
        sa.Column("credits_before", sa.Integer(), nullable=False),
        sa.Column("credits_after", sa.Integer(), nullable=False),
        sa.Column("cause", sa.String(50), nullable=False),
        sa.Column("cause_ref", sa.String(255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["account_id"], ["account.id"], name="fk_credit_reset_account_id", ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("cause_ref", name="uq_credit_reset_cause_ref"),
    )
    op.create_index(
        "idx_credit_reset_account_created", "credit_reset", ["account_id", "created_at"]
    )

    op.create_table(
        "subscription_record",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subscription_ref", sa.String(255), nullable=False),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("price_ref", sa.String(255), nullable=True),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_event_id", sa.String(255), nullable=False),
        sa.Column("last_event_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["account.id"],
            name="fk_subscription_record_account_id",
            ondelete="RESTRICT",
        ),
        # Target of the ON CONFLICT upsert
        sa.UniqueConstraint("subscription_ref", name="uq_subscription_record_subscription_ref"),
    )
    op.create_index(
        "idx_subscription_record_account_id", "subscription_record", ["account_id"]
    )

    op.create_table(
        "processed_event",
        sa.Column("event_id", sa.String(255), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
    )
    # Retention purge scans by age
    op.create_index("idx_processed_event_processed_at", "processed_event", ["processed_at"])

    op.create_table(
        "billing_price",
        sa.Column("price_ref", sa.String(255), primary_key=True),
        sa.Column("product_ref", sa.String(255), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )


def downgrade():
    """Drop all ledger tables."""
    op.drop_table("billing_price")
    op.drop_index("idx_processed_event_processed_at", table_name="processed_event")
    op.drop_table("processed_event")
    op.drop_index("idx_subscription_record_account_id", table_name="subscription_record")
    op.drop_table("subscription_record")
    op.drop_index("idx_credit_reset_account_created", table_name="credit_reset")
    op.drop_table("credit_reset")
    op.drop_index("idx_spend_entry_account_created", table_name="spend_entry")
    op.drop_table("spend_entry")
    op.drop_index("idx_account_tier", table_name="account")
    op.drop_table("account")
