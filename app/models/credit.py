# app/models/credit.py
from sqlalchemy import Column, Integer, String, DateTime, Text, Index, UniqueConstraint

from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.identifiers import new_id


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"
    id = Column(String(36), primary_key=True, default=new_id)
    transaction_no = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(64), nullable=False, index=True)

    # 'grant' - начисление, 'consume' - списание
    type = Column(String(16), nullable=False)
    # 'payment', 'subscription', 'renewal', 'redemption', 'gift', 'admin', 'refund'
    scene = Column(String(32), nullable=False)
    # Положительное число у начислений, отрицательное у списаний
    credits = Column(Integer, nullable=False)
    # Неизрасходованный остаток начисления. Только уменьшается и никогда не < 0
    remaining_credits = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="active")

    order_no = Column(String(64), nullable=True, index=True)
    subscription_no = Column(String(64), nullable=True, index=True)
    # Номер месяца годовой подписки, за который выдано ежемесячное начисление.
    # Считается от начала оплаченного периода, поэтому хранится вместе с ним
    billing_period_start = Column(DateTime, nullable=True)
    billing_month = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    # JSON с разбивкой списания по начислениям (только у 'consume')
    consumed_detail = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)  # NULL - бессрочно

    __table_args__ = (
        Index("idx_credit_user_type_expires", "user_id", "type", "expires_at"),
        # Ежемесячное начисление выдается не более одного раза за месяц каждого периода
        UniqueConstraint(
            "subscription_no", "billing_period_start", "billing_month",
            name="uq_credit_subscription_period_month",
        ),
    )
