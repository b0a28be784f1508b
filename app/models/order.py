# app/models/order.py
from sqlalchemy import Column, Integer, String, DateTime, Text

from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.identifiers import new_id


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, default=new_id)
    order_no = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(64), nullable=False, index=True)

    # 'pending' -> 'paid' | 'failed'. Оплаченный заказ назад не откатывается
    status = Column(String(16), nullable=False, default="pending", index=True)
    amount = Column(Integer, nullable=False, default=0)  # в центах
    currency = Column(String(8), nullable=False, default="USD")
    product_id = Column(String(64), nullable=True)
    product_name = Column(String(255), nullable=True)
    # 'one_time' или 'subscription'
    payment_type = Column(String(16), nullable=False, default="one_time")
    payment_interval = Column(String(16), nullable=True)
    payment_provider = Column(String(32), nullable=False)

    # Данные, пришедшие от провайдера при оплате
    transaction_id = Column(String(128), nullable=True, index=True)
    payment_amount = Column(Integer, nullable=True)
    payment_currency = Column(String(8), nullable=True)
    payment_email = Column(String(255), nullable=True)
    # Версионированный "сырой" ответ провайдера, см. app/schemas/payment.py
    payment_result = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    subscription_no = Column(String(64), nullable=True)
    subscription_id = Column(String(128), nullable=True)

    credits_amount = Column(Integer, nullable=True)
    credits_valid_days = Column(Integer, nullable=True)

    # ID партнера, которому положена комиссия с этого заказа
    referrer_id = Column(String(64), nullable=True, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
