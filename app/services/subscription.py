# app/services/subscription.py

"""
Машина состояний подписки.

    active -> active    (продление / обновление)
    active -> canceled  (отмена)
    active -> expired   (вытеснена новой подпиской)

`expired` и `canceled` - терминальные. У пользователя не более одной активной
подписки: вставка новой и перевод старой в `expired` идут в одной транзакции,
а частичный уникальный индекс страхует инвариант на уровне БД.
"""

import logging
from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ErrorKind, Ok, Err, Result
from app.crud import credit as crud_credit
from app.crud import subscription as crud_subscription
from app.models.order import Order
from app.models.subscription import Subscription
from app.schemas.payment import ProviderPayload
from app.schemas.subscription import MembershipAssignment, Subscription as SubscriptionSchema
from app.services.credit import calculate_credit_expiration_time
from app.utils.clock import add_months, utcnow
from app.utils.identifiers import new_order_no, new_subscription_no

logger = logging.getLogger(__name__)

ACTIVE = "active"
EXPIRED = "expired"
CANCELED = "canceled"

FREE_PLAN = "free"
MANUAL_PROVIDER = "manual"

ALLOWED_TRANSITIONS = {
    ACTIVE: {ACTIVE, CANCELED, EXPIRED},
    EXPIRED: set(),
    CANCELED: set(),
}


class InvalidSubscriptionTransition(Exception):
    def __init__(self, subscription_no: str, current: str, target: str):
        self.subscription_no = subscription_no
        self.current = current
        self.target = target
        super().__init__(f"Subscription {subscription_no}: transition {current} -> {target} is not allowed")


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def is_terminal(subscription: Subscription) -> bool:
    return not ALLOWED_TRANSITIONS.get(subscription.status)


def _transition(subscription: Subscription, target: str):
    if not can_transition(subscription.status, target):
        raise InvalidSubscriptionTransition(subscription.subscription_no, subscription.status, target)
    subscription.status = target


def get_current_subscription(db: Session, user_id: str) -> Subscription | None:
    return crud_subscription.get_active_subscription(db, user_id)


def expire_active_subscriptions(db: Session, user_id: str, now: datetime | None = None) -> List[Subscription]:
    """
    Блокирует и переводит в `expired` все активные подписки пользователя.
    Не коммитит: вызывается внутри транзакции, создающей новую подписку.
    """
    now = now or utcnow()
    expired = crud_subscription.lock_active_subscriptions(db, user_id)
    for subscription in expired:
        _transition(subscription, EXPIRED)
        subscription.ended_at = now
        logger.info(f"Subscription {subscription.subscription_no} of user {user_id} superseded and expired.")
    # Освобождаем слот частичного уникального индекса до вставки новой строки
    db.flush()
    return expired


def create_subscription(
    db: Session,
    *,
    user_id: str,
    plan_id: str,
    period_start: datetime,
    period_end: datetime,
    order_id: str | None = None,
    payment_provider: str | None = None,
    subscription_id: str | None = None,
    interval: str | None = None,
    interval_count: int = 1,
    amount: int | None = None,
    currency: str | None = None,
    credits_amount: int | None = None,
    credits_valid_days: int | None = None,
    subscription_result: str | None = None,
) -> Subscription:
    """
    Создает активную подписку, предварительно погасив предыдущую.
    Требует внешнего вызова db.commit().
    """
    expire_active_subscriptions(db, user_id, now=period_start)
    subscription = Subscription(
        subscription_no=new_subscription_no(),
        subscription_id=subscription_id,
        user_id=user_id,
        order_id=order_id,
        status=ACTIVE,
        plan_id=plan_id,
        payment_provider=payment_provider,
        interval=interval,
        interval_count=interval_count,
        amount=amount,
        currency=currency,
        current_period_start=period_start,
        current_period_end=period_end,
        credits_amount=credits_amount,
        credits_valid_days=credits_valid_days,
        subscription_result=subscription_result,
    )
    db.add(subscription)
    db.flush()
    logger.info(
        f"Created subscription {subscription.subscription_no} ({plan_id}) for user {user_id}, "
        f"period {period_start} - {period_end}"
    )
    return subscription


def advance_period(subscription: Subscription, period_start: datetime, period_end: datetime):
    """Продление: active -> active с новым периодом."""
    _transition(subscription, ACTIVE)
    subscription.current_period_start = period_start
    subscription.current_period_end = period_end


def cancel(subscription: Subscription, now: datetime | None = None, period_end: datetime | None = None):
    _transition(subscription, CANCELED)
    subscription.canceled_at = now or utcnow()
    if period_end is not None:
        subscription.current_period_end = period_end


def expire(subscription: Subscription, now: datetime | None = None):
    _transition(subscription, EXPIRED)
    subscription.ended_at = now or utcnow()



# --- Ручное назначение тарифа ---

def _free_membership(db: Session, user_id: str, admin_id: str) -> Result[MembershipAssignment]:
    try:
        expired = expire_active_subscriptions(db, user_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to reset membership of user {user_id}", exc_info=True)
        raise
    logger.info(f"Admin {admin_id} reset user {user_id} to free plan, {len(expired)} subscription(s) expired.")
    return Ok(MembershipAssignment(user_id=user_id, plan_id=FREE_PLAN, expired_subscriptions=len(expired)))


def assign_membership(db: Session, user_id: str, plan_id: str, admin_id: str) -> Result[MembershipAssignment]:
    """
    Администратор вручную выдает тариф: оплаченный заказ на сумму тарифа,
    новая активная подписка (предыдущая гасится) и кредиты первого месяца.
    Все в одной транзакции. План 'free' только гасит активные подписки.
    """
    if plan_id == FREE_PLAN:
        return _free_membership(db, user_id, admin_id)

    plan = settings.PLANS.get(plan_id)
    if not plan or not plan.get("membership"):
        return Err(ErrorKind.INVALID_PLAN, plan_id)

    now = utcnow()
    interval = plan.get("interval") or "month"
    period_end = add_months(now, 12 if interval == "year" else 1)
    credits = int(plan.get("credits") or 0)
    valid_days = plan.get("valid_days")
    payload = ProviderPayload(
        provider=MANUAL_PROVIDER,
        data={"source": "admin_action", "admin_id": admin_id, "created_at": now.isoformat()},
    ).dump()

    try:
        # Сначала гасим старые подписки, чтобы посчитать их для ответа
        expired = expire_active_subscriptions(db, user_id, now=now)
        order = Order(
            order_no=new_order_no(),
            user_id=user_id,
            status="paid",
            amount=int(plan.get("price") or 0),
            currency="USD",
            product_id=plan_id,
            product_name=plan_id,
            payment_type="subscription",
            payment_interval=interval,
            payment_provider=MANUAL_PROVIDER,
            payment_result=payload,
            paid_at=now,
            credits_amount=credits,
            credits_valid_days=valid_days,
            description=f"Manual membership assignment by admin {admin_id}: {plan_id}",
        )
        db.add(order)
        db.flush()

        subscription = create_subscription(
            db,
            user_id=user_id,
            plan_id=plan_id,
            period_start=now,
            period_end=period_end,
            order_id=order.id,
            payment_provider=MANUAL_PROVIDER,
            subscription_id=f"manual_{order.order_no}",
            interval=interval,
            amount=order.amount,
            currency=order.currency,
            credits_amount=credits,
            credits_valid_days=valid_days,
            subscription_result=payload,
        )
        order.subscription_no = subscription.subscription_no
        order.subscription_id = subscription.subscription_id

        if credits > 0:
            expires_at = calculate_credit_expiration_time(valid_days, now=now)
            crud_credit.create_grant(
                db,
                user_id=user_id,
                credits=credits,
                scene="subscription",
                expires_at=min(expires_at, period_end) if expires_at else None,
                order_no=order.order_no,
                subscription_no=subscription.subscription_no,
                description=f"Grant credit for manual membership {plan_id}",
            )

        db.commit()
        db.refresh(subscription)
    except Exception:
        db.rollback()
        logger.error(f"Failed to assign plan {plan_id} to user {user_id}", exc_info=True)
        raise

    logger.info(
        f"Admin {admin_id} assigned plan {plan_id} to user {user_id}: subscription {subscription.subscription_no} "
        f"until {period_end}, {credits} credits, {len(expired)} previous subscription(s) expired."
    )
    return Ok(MembershipAssignment(
        user_id=user_id,
        plan_id=plan_id,
        order_no=order.order_no,
        subscription=SubscriptionSchema.model_validate(subscription),
        expired_subscriptions=len(expired),
        credits_granted=credits,
    ))
