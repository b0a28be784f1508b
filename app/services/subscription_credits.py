# app/services/subscription_credits.py

import logging
from datetime import datetime, timedelta
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import credit as crud_credit
from app.crud import subscription as crud_subscription
from app.db.session import SessionLocal
from app.services.redemption import REDEMPTION_PROVIDER
from app.utils.clock import add_months, utcnow

logger = logging.getLogger(__name__)

MONTHLY_CREDITS_VALID_DAYS = 30


def full_months_between(start: datetime, now: datetime, end: datetime) -> int:
    """Сколько полных месяцев прошло с начала периода (не дальше конца периода)."""
    months = 0
    while True:
        next_date = add_months(start, months + 1)
        if next_date > now or next_date >= end:
            return months
        months += 1


def grant_monthly_credits_for(db: Session, subscription_pk: str, now: datetime) -> int:
    """
    Выдает кредиты за текущий месяц годовой подписки, если они еще не выданы.
    Возвращает номер выданного месяца или 0, если выдавать нечего.
    """
    subscription = crud_subscription.lock_subscription(db, subscription_pk)
    if subscription is None or subscription.status != "active":
        db.rollback()
        return 0

    month_number = full_months_between(subscription.current_period_start, now, subscription.current_period_end)
    # Первый месяц выдается при оплате
    if month_number == 0:
        db.rollback()
        return 0
    period_start = subscription.current_period_start
    if crud_credit.get_last_billing_month(db, subscription.subscription_no, period_start) >= month_number:
        db.rollback()
        return 0

    plan = settings.PLANS.get(subscription.plan_id) or {}
    credits = int(plan.get("credits") or subscription.credits_amount or 0)
    if credits <= 0:
        db.rollback()
        logger.warning(f"Subscription {subscription.subscription_no} has no credits configured. Skipping.")
        return 0

    expires_at = min(now + timedelta(days=MONTHLY_CREDITS_VALID_DAYS), subscription.current_period_end)
    crud_credit.create_grant(
        db,
        user_id=subscription.user_id,
        credits=credits,
        scene="subscription",
        expires_at=expires_at,
        subscription_no=subscription.subscription_no,
        billing_month=month_number,
        billing_period_start=period_start,
        description=f"Monthly credits: month {month_number + 1} of subscription {subscription.subscription_no}",
    )
    db.commit()
    logger.info(
        f"Granted {credits} monthly credits to user {subscription.user_id} "
        f"(subscription {subscription.subscription_no}, month {month_number + 1})"
    )
    return month_number


async def grant_monthly_subscription_credits_task() -> dict:
    """
    Ежедневная задача: начисляет ежемесячные кредиты владельцам годовых подписок.
    Каждая подписка обрабатывается в своей транзакции, ошибка одной не останавливает остальные.
    """
    logger.info("--- Starting scheduled job: Monthly Credits For Yearly Subscriptions ---")
    stats = {"total": 0, "granted": 0, "skipped": 0, "errors": 0}
    now = utcnow()

    with SessionLocal() as db:
        subscriptions = crud_subscription.get_active_by_interval(db, "year", now)
        # Членство по коду уже получило кредиты на весь срок при активации
        subscription_ids = [s.id for s in subscriptions if s.payment_provider != REDEMPTION_PROVIDER]

    stats["total"] = len(subscription_ids)
    if not subscription_ids:
        logger.info("No active yearly subscriptions found.")
        return stats

    for subscription_pk in subscription_ids:
        with SessionLocal() as db:
            try:
                if grant_monthly_credits_for(db, subscription_pk, now):
                    stats["granted"] += 1
                else:
                    stats["skipped"] += 1
            except Exception:
                db.rollback()
                stats["errors"] += 1
                logger.error(f"Failed to grant monthly credits for subscription {subscription_pk}", exc_info=True)

    logger.info(f"--- Finished scheduled job: Monthly Credits. Stats: {stats} ---")
    return stats
