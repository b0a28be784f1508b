# tests/test_subscription_credits.py

import logging
from datetime import datetime, timedelta

import pytest

from app.models.credit import CreditTransaction
from app.schemas.payment import PaymentEvent, PaymentInfo, SubscriptionInfo
from app.services import payment as payment_service
from app.services import subscription as subscription_service
from app.services import subscription_credits
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _yearly(db, user_id="U1", started_days_ago=0, provider="manual", plan_id="pro-yearly"):
    start = utcnow() - timedelta(days=started_days_ago)
    subscription = subscription_service.create_subscription(
        db,
        user_id=user_id,
        plan_id=plan_id,
        period_start=start,
        period_end=start + timedelta(days=365),
        interval="year",
        payment_provider=provider,
        credits_amount=2000,
        credits_valid_days=30,
    )
    db.commit()
    return subscription


@pytest.mark.parametrize("start, months, expected", [
    (datetime(2024, 1, 31), 1, datetime(2024, 2, 29)),
    (datetime(2023, 1, 31), 1, datetime(2023, 2, 28)),
    (datetime(2024, 1, 15), 12, datetime(2025, 1, 15)),
    (datetime(2024, 11, 30), 3, datetime(2025, 2, 28)),
])
def test_add_months_clamps_day(start, months, expected):
    assert subscription_credits.add_months(start, months) == expected


def test_full_months_between():
    start = datetime(2024, 1, 10)
    end = datetime(2025, 1, 10)
    assert subscription_credits.full_months_between(start, datetime(2024, 2, 9), end) == 0
    assert subscription_credits.full_months_between(start, datetime(2024, 2, 10), end) == 1
    assert subscription_credits.full_months_between(start, datetime(2024, 7, 1), end) == 5
    # Последний месяц периода не порождает 13-го начисления
    assert subscription_credits.full_months_between(start, datetime(2025, 1, 9), end) == 11


def test_first_month_is_not_granted_by_job(db_session):
    subscription = _yearly(db_session, started_days_ago=5)

    assert subscription_credits.grant_monthly_credits_for(db_session, subscription.id, utcnow()) == 0
    assert db_session.query(CreditTransaction).count() == 0


def test_monthly_grant_is_issued_once_per_month(db_session):
    subscription = _yearly(db_session, started_days_ago=65)
    now = utcnow()

    month = subscription_credits.grant_monthly_credits_for(db_session, subscription.id, now)
    again = subscription_credits.grant_monthly_credits_for(db_session, subscription.id, now)

    assert month == 2
    assert again == 0
    grants = db_session.query(CreditTransaction).filter_by(subscription_no=subscription.subscription_no).all()
    assert len(grants) == 1
    assert grants[0].billing_month == 2
    assert grants[0].credits == 2000
    assert grants[0].expires_at == min(now + timedelta(days=30), subscription.current_period_end)


@pytest.mark.asyncio
async def test_job_skips_code_memberships_and_counts_stats(db_session, patch_session_local):
    _yearly(db_session, user_id="U1", started_days_ago=40)
    _yearly(db_session, user_id="U2", started_days_ago=10)
    _yearly(db_session, user_id="U3", started_days_ago=40, provider="redemption")

    stats = await subscription_credits.grant_monthly_subscription_credits_task()

    assert stats == {"total": 2, "granted": 1, "skipped": 1, "errors": 0}
    db_session.expire_all()
    assert db_session.query(CreditTransaction).filter_by(user_id="U1").count() == 1
    assert db_session.query(CreditTransaction).filter_by(user_id="U3").count() == 0

    # Повторный запуск в тот же день ничего не выдает
    stats = await subscription_credits.grant_monthly_subscription_credits_task()
    assert stats["granted"] == 0
    logger.info(f"Monthly credits job stats: {stats}")


@pytest.mark.asyncio
async def test_job_error_in_one_subscription_does_not_stop_others(db_session, patch_session_local, mocker):
    _yearly(db_session, user_id="U1", started_days_ago=40)
    _yearly(db_session, user_id="U2", started_days_ago=40)
    original = subscription_credits.grant_monthly_credits_for
    calls = {"n": 0}

    def flaky(db, subscription_pk, now):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("deadlock detected")
        return original(db, subscription_pk, now)

    mocker.patch("app.services.subscription_credits.grant_monthly_credits_for", side_effect=flaky)

    stats = await subscription_credits.grant_monthly_subscription_credits_task()

    assert stats["errors"] == 1
    assert stats["granted"] == 1


def test_monthly_grants_restart_after_yearly_renewal(db_session):
    start = utcnow() - timedelta(days=400)
    subscription = subscription_service.create_subscription(
        db_session,
        user_id="U1",
        plan_id="pro-yearly",
        period_start=start,
        period_end=start + timedelta(days=365),
        subscription_id="sub_yearly_1",
        payment_provider="manual",
        interval="year",
        credits_amount=2000,
        credits_valid_days=30,
    )
    db_session.commit()
    for month in range(1, 12):
        moment = subscription_credits.add_months(start, month) + timedelta(hours=1)
        assert subscription_credits.grant_monthly_credits_for(db_session, subscription.id, moment) == month

    new_start = subscription.current_period_end
    renewal = PaymentEvent(
        order_no="renewal-year-2",
        status="SUCCESS",
        payment_info=PaymentInfo(transaction_id="txn_year_2"),
        subscription_info=SubscriptionInfo(
            subscription_id="sub_yearly_1",
            interval="year",
            current_period_start=new_start,
            current_period_end=new_start + timedelta(days=365),
        ),
    )
    assert payment_service.apply_renewal(db_session, renewal, "manual").is_ok

    moment = subscription_credits.add_months(new_start, 1) + timedelta(hours=1)
    assert subscription_credits.grant_monthly_credits_for(db_session, subscription.id, moment) == 1
    assert subscription_credits.grant_monthly_credits_for(db_session, subscription.id, moment) == 0

    monthly = db_session.query(CreditTransaction).filter(
        CreditTransaction.subscription_no == subscription.subscription_no,
        CreditTransaction.billing_month.isnot(None),
    ).all()
    assert len(monthly) == 12
    assert {g.billing_period_start for g in monthly} == {start, new_start}
