# app/models/subscription.py
from sqlalchemy import Column, Integer, String, DateTime, Text, Index, text

from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.identifiers import new_id


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(String(36), primary_key=True, default=new_id)
    subscription_no = Column(String(64), unique=True, index=True, nullable=False)
    # ID подписки на стороне провайдера
    subscription_id = Column(String(128), nullable=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    order_id = Column(String(36), nullable=True)

    # 'active', 'expired', 'canceled'. Два последних - терминальные
    status = Column(String(16), nullable=False, default="active")
    plan_id = Column(String(64), nullable=False)
    payment_provider = Column(String(32), nullable=True)
    interval = Column(String(16), nullable=True)
    interval_count = Column(Integer, nullable=False, default=1)
    amount = Column(Integer, nullable=True)
    currency = Column(String(8), nullable=True)

    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    canceled_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)

    # Шаблон начислений при продлении
    credits_amount = Column(Integer, nullable=True)
    credits_valid_days = Column(Integer, nullable=True)

    subscription_result = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # Не более одной активной подписки на пользователя - гарантия на уровне БД
        Index(
            "uq_subscription_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
