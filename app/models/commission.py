# app/models/commission.py
from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint

from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.identifiers import new_id


class Commission(Base):
    __tablename__ = "commissions"
    id = Column(String(36), primary_key=True, default=new_id)
    # Партнер, получающий комиссию
    user_id = Column(String(64), nullable=False, index=True)
    order_id = Column(String(36), nullable=False)
    order_no = Column(String(64), nullable=False)
    amount = Column(Integer, nullable=False)  # в центах
    currency = Column(String(8), nullable=False, default="USD")
    # 'pending', 'paid' (доступна к выводу), 'cancelled'
    status = Column(String(16), nullable=False, default="paid")
    # 'one_time', 'renewal'
    type = Column(String(16), nullable=False, default="one_time")
    rate = Column(String(16), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("order_no", "user_id", name="uq_commission_order_user"),
    )


class Withdrawal(Base):
    __tablename__ = "withdrawals"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    # 'pending' -> 'approved' -> 'paid', 'pending' | 'approved' -> 'rejected'
    status = Column(String(16), nullable=False, default="pending", index=True)
    method = Column(String(32), nullable=False)
    # Снимок реквизитов на момент заявки (JSON)
    payout_details = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
