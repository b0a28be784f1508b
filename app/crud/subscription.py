# app/crud/subscription.py
from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from app.models.subscription import Subscription


def get_active_subscription(db: Session, user_id: str) -> Subscription | None:
    return db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status == "active",
    ).order_by(Subscription.created_at.desc()).first()

def lock_active_subscriptions(db: Session, user_id: str) -> List[Subscription]:
    """Блокирует активные подписки пользователя перед созданием новой."""
    return db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status == "active",
    ).with_for_update().all()

def lock_subscription(db: Session, subscription_pk: str) -> Subscription | None:
    return db.query(Subscription).filter(Subscription.id == subscription_pk).with_for_update().first()

def get_by_subscription_no(db: Session, subscription_no: str) -> Subscription | None:
    return db.query(Subscription).filter(Subscription.subscription_no == subscription_no).first()

def get_active_by_interval(db: Session, interval: str, now: datetime) -> List[Subscription]:
    """Активные подписки с заданным интервалом, период которых еще не закончился."""
    return db.query(Subscription).filter(
        Subscription.interval == interval,
        Subscription.status == "active",
        Subscription.current_period_end >= now,
    ).all()

def lock_by_provider_id(db: Session, subscription_id: str) -> Subscription | None:
    return db.query(Subscription).filter(
        Subscription.subscription_id == subscription_id
    ).with_for_update().first()

