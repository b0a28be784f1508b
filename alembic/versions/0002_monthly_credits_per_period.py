"""monthly credits keyed by billing period

Revision ID: 0002_period_month
Revises: 0001_initial
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


revision = "0002_period_month"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("credit_transactions", sa.Column("billing_period_start", sa.DateTime(), nullable=True))
    # Уже выданные ежемесячные начисления относятся к текущему периоду своей подписки
    op.execute(
        """
        UPDATE credit_transactions AS ct
        SET billing_period_start = s.current_period_start
        FROM subscriptions AS s
        WHERE ct.billing_month IS NOT NULL AND ct.subscription_no = s.subscription_no
        """
    )
    op.drop_constraint("uq_credit_subscription_billing_month", "credit_transactions", type_="unique")
    op.create_unique_constraint(
        "uq_credit_subscription_period_month",
        "credit_transactions",
        ["subscription_no", "billing_period_start", "billing_month"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_credit_subscription_period_month", "credit_transactions", type_="unique")
    op.create_unique_constraint(
        "uq_credit_subscription_billing_month", "credit_transactions", ["subscription_no", "billing_month"]
    )
    op.drop_column("credit_transactions", "billing_period_start")
