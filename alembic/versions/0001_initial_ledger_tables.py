"""initial ledger tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("transaction_no", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("scene", sa.String(32), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("remaining_credits", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("order_no", sa.String(64), nullable=True),
        sa.Column("subscription_no", sa.String(64), nullable=True),
        sa.Column("billing_month", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("consumed_detail", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_no", "billing_month", name="uq_credit_subscription_billing_month"),
    )
    op.create_index("ix_credit_transactions_transaction_no", "credit_transactions", ["transaction_no"], unique=True)
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index("ix_credit_transactions_order_no", "credit_transactions", ["order_no"])
    op.create_index("ix_credit_transactions_subscription_no", "credit_transactions", ["subscription_no"])
    op.create_index("idx_credit_user_type_expires", "credit_transactions", ["user_id", "type", "expires_at"])

    op.create_table(
        "redemption_codes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("code_preview", sa.String(32), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.String(64), nullable=True),
        sa.Column("membership_days", sa.Integer(), nullable=True),
        sa.Column("credit_validity_days", sa.Integer(), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_redemption_codes_code_hash", "redemption_codes", ["code_hash"], unique=True)
    op.create_index("ix_redemption_codes_status", "redemption_codes", ["status"])

    op.create_table(
        "redemption_records",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("code_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["code_id"], ["redemption_codes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code_id", "user_id", name="uq_redemption_record_code_user"),
    )
    op.create_index("ix_redemption_records_code_id", "redemption_records", ["code_id"])
    op.create_index("ix_redemption_records_user_id", "redemption_records", ["user_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("order_no", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("payment_type", sa.String(16), nullable=False),
        sa.Column("payment_interval", sa.String(16), nullable=True),
        sa.Column("payment_provider", sa.String(32), nullable=False),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("payment_amount", sa.Integer(), nullable=True),
        sa.Column("payment_currency", sa.String(8), nullable=True),
        sa.Column("payment_email", sa.String(255), nullable=True),
        sa.Column("payment_result", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("subscription_no", sa.String(64), nullable=True),
        sa.Column("subscription_id", sa.String(128), nullable=True),
        sa.Column("credits_amount", sa.Integer(), nullable=True),
        sa.Column("credits_valid_days", sa.Integer(), nullable=True),
        sa.Column("referrer_id", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_order_no", "orders", ["order_no"], unique=True)
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_transaction_id", "orders", ["transaction_id"])
    op.create_index("ix_orders_referrer_id", "orders", ["referrer_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("subscription_no", sa.String(64), nullable=False),
        sa.Column("subscription_id", sa.String(128), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("order_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("plan_id", sa.String(64), nullable=False),
        sa.Column("payment_provider", sa.String(32), nullable=True),
        sa.Column("interval", sa.String(16), nullable=True),
        sa.Column("interval_count", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("current_period_start", sa.DateTime(), nullable=False),
        sa.Column("current_period_end", sa.DateTime(), nullable=False),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("credits_amount", sa.Integer(), nullable=True),
        sa.Column("credits_valid_days", sa.Integer(), nullable=True),
        sa.Column("subscription_result", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscriptions_subscription_no", "subscriptions", ["subscription_no"], unique=True)
    op.create_index("ix_subscriptions_subscription_id", "subscriptions", ["subscription_id"])
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    # Не более одной активной подписки на пользователя
    op.create_index(
        "uq_subscription_user_active",
        "subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "commissions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("order_id", sa.String(36), nullable=False),
        sa.Column("order_no", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("rate", sa.String(16), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_no", "user_id", name="uq_commission_order_user"),
    )
    op.create_index("ix_commissions_user_id", "commissions", ["user_id"])

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("payout_details", sa.Text(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_withdrawals_user_id", "withdrawals", ["user_id"])
    op.create_index("ix_withdrawals_status", "withdrawals", ["status"])


def downgrade() -> None:
    op.drop_index("ix_withdrawals_status", table_name="withdrawals")
    op.drop_index("ix_withdrawals_user_id", table_name="withdrawals")
    op.drop_table("withdrawals")
    op.drop_index("ix_commissions_user_id", table_name="commissions")
    op.drop_table("commissions")
    op.drop_index("uq_subscription_user_active", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_subscription_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_subscription_no", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_orders_referrer_id", table_name="orders")
    op.drop_index("ix_orders_transaction_id", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_index("ix_orders_order_no", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_redemption_records_user_id", table_name="redemption_records")
    op.drop_index("ix_redemption_records_code_id", table_name="redemption_records")
    op.drop_table("redemption_records")
    op.drop_index("ix_redemption_codes_status", table_name="redemption_codes")
    op.drop_index("ix_redemption_codes_code_hash", table_name="redemption_codes")
    op.drop_table("redemption_codes")
    op.drop_index("idx_credit_user_type_expires", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_subscription_no", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_order_no", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_user_id", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_transaction_no", table_name="credit_transactions")
    op.drop_table("credit_transactions")
