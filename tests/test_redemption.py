# tests/test_redemption.py

import logging
from datetime import timedelta

import pytest

from app.core.errors import ErrorKind
from app.models.credit import CreditTransaction
from app.models.order import Order
from app.models.redemption import RedemptionCode, RedemptionRecord
from app.models.subscription import Subscription
from app.services import redemption as redemption_service
from app.services import subscription as subscription_service
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _add_code(db, code, **fields):
    defaults = dict(type="credits", credits=100, max_uses=1, credit_validity_days=30)
    defaults.update(fields)
    row = RedemptionCode(
        code_hash=redemption_service.hash_code(code),
        code_preview=redemption_service.mask_code(code),
        **defaults,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# --- Формат кодов ---

def test_generated_code_format():
    code = redemption_service.generate_code()
    groups = code.split("-")
    assert len(groups) == 4
    assert all(len(g) == 4 for g in groups)
    assert not set(code.replace("-", "")) & set("01OI")


@pytest.mark.parametrize("raw, expected", [
    ("abcd-efgh-1234-5678", "ABCD-EFGH-1234-5678"),
    ("  ABCD-EFGH-1234-5678 \n", "ABCD-EFGH-1234-5678"),
    ("abcdefgh12345678", "ABCD-EFGH-1234-5678"),
    ("abcd efgh 1234 5678", "ABCD-EFGH-1234-5678"),
])
def test_normalize_code(raw, expected):
    assert redemption_service.normalize_code(raw) == expected


def test_hash_is_case_and_whitespace_insensitive():
    assert redemption_service.hash_code(" abcd-efgh-1234-5678") == redemption_service.hash_code("ABCD-EFGH-1234-5678")


def test_mask_code_keeps_first_and_last_group():
    assert redemption_service.mask_code("ABCD-EFGH-2345-5678") == "ABCD-****-****-5678"


# --- Выпуск ---

def test_issue_credit_codes_stores_only_hashes(db_session):
    result = redemption_service.issue_credit_codes(db_session, credits=50, quantity=3, max_uses=2, created_by="root-admin")

    assert result.is_ok
    issued = result.value
    assert len(set(issued.codes)) == 3
    rows = db_session.query(RedemptionCode).all()
    assert len(rows) == 3
    stored_hashes = {r.code_hash for r in rows}
    assert stored_hashes == {redemption_service.hash_code(c) for c in issued.codes}
    for row in rows:
        assert row.max_uses == 2
        assert row.status == "active"
        assert "****" in row.code_preview
        assert row.credit_validity_days == 30


def test_issue_membership_codes_takes_credits_from_plan(db_session):
    result = redemption_service.issue_membership_codes(db_session, plan_id="pro-yearly", quantity=2, membership_days=365)

    assert result.is_ok
    assert result.value.credits == 2000
    row = db_session.query(RedemptionCode).first()
    assert row.type == "membership"
    assert row.max_uses == 1
    assert row.membership_days == 365


@pytest.mark.parametrize("plan_id", ["no-such-plan", "free"])
def test_issue_membership_codes_rejects_unknown_or_non_membership_plan(db_session, plan_id):
    result = redemption_service.issue_membership_codes(db_session, plan_id=plan_id, quantity=1, membership_days=30)

    assert result.kind == ErrorKind.INVALID_PLAN
    assert db_session.query(RedemptionCode).count() == 0


def test_issue_rejects_non_positive_amounts(db_session):
    assert redemption_service.issue_credit_codes(db_session, credits=0, quantity=1).kind == ErrorKind.INVALID_AMOUNT
    assert redemption_service.issue_credit_codes(db_session, credits=10, quantity=0).kind == ErrorKind.INVALID_AMOUNT


# --- Активация ---

def test_single_use_credit_code_scenario(db_session):
    """U1 активирует код, повтор U1 - already_redeemed, U2 - code_used_or_expired."""
    code = _add_code(db_session, "ABCD-EFGH-1234-5678", credits=100, max_uses=1, credit_validity_days=30)
    before = utcnow()

    first = redemption_service.redeem(db_session, "abcd-efgh-1234-5678", "U1")

    assert first.is_ok
    assert first.value.credits == 100
    assert first.value.type == "credits"
    grant = db_session.query(CreditTransaction).filter_by(user_id="U1").one()
    assert grant.scene == "redemption"
    assert grant.remaining_credits == 100
    assert before + timedelta(days=30) <= grant.expires_at <= utcnow() + timedelta(days=30)

    db_session.refresh(code)
    assert code.used_count == 1
    assert code.status == "used"

    second = redemption_service.redeem(db_session, "ABCD-EFGH-1234-5678", "U1")
    assert second.kind == ErrorKind.ALREADY_REDEEMED

    other = redemption_service.redeem(db_session, "ABCD-EFGH-1234-5678", "U2")
    assert other.kind == ErrorKind.CODE_USED_OR_EXPIRED

    # Отказы ничего не записали
    assert db_session.query(CreditTransaction).count() == 1
    assert db_session.query(RedemptionRecord).count() == 1


def test_unknown_code(db_session):
    assert redemption_service.redeem(db_session, "ZZZZ-ZZZZ-ZZZZ-ZZZZ", "U1").kind == ErrorKind.INVALID_CODE


def test_expired_code_is_rejected(db_session):
    _add_code(db_session, "EXPD-EXPD-EXPD-EXPD", expires_at=utcnow() - timedelta(minutes=1))

    result = redemption_service.redeem(db_session, "EXPD-EXPD-EXPD-EXPD", "U1")

    assert result.kind == ErrorKind.CODE_EXPIRED
    assert db_session.query(CreditTransaction).count() == 0


def test_multi_use_code_allows_each_user_once(db_session):
    code = _add_code(db_session, "MULT-MULT-MULT-MULT", credits=10, max_uses=3, credit_validity_days=0)

    for user_id in ("U1", "U2", "U3"):
        assert redemption_service.redeem(db_session, "MULT-MULT-MULT-MULT", user_id).is_ok

    assert redemption_service.redeem(db_session, "MULT-MULT-MULT-MULT", "U2").kind == ErrorKind.ALREADY_REDEEMED
    assert redemption_service.redeem(db_session, "MULT-MULT-MULT-MULT", "U4").kind == ErrorKind.CODE_USED_OR_EXPIRED

    db_session.refresh(code)
    assert code.used_count == 3
    assert code.status == "used"
    # validity 0 - бессрочные кредиты
    assert all(g.expires_at is None for g in db_session.query(CreditTransaction).all())


def test_usage_limit_reached_when_status_still_active(db_session):
    # Рассинхронизированная строка: счетчик исчерпан, статус не переключен
    _add_code(db_session, "LMIT-LMIT-LMIT-LMIT", max_uses=2, used_count=2, status="active")

    result = redemption_service.redeem(db_session, "LMIT-LMIT-LMIT-LMIT", "U1")

    assert result.kind == ErrorKind.CODE_USAGE_LIMIT_REACHED


def test_membership_code_creates_order_subscription_and_credits(db_session):
    """pro-yearly на 365 дней: заказ на 0, новая подписка, кредиты до конца периода."""
    _add_code(
        db_session, "PROY-PROY-PROY-PROY",
        type="membership", credits=2000, plan_id="pro-yearly", membership_days=365, credit_validity_days=365,
    )
    now = utcnow()
    previous = subscription_service.create_subscription(
        db_session, user_id="U1", plan_id="plus-monthly",
        period_start=now - timedelta(days=3), period_end=now + timedelta(days=27),
    )
    db_session.commit()

    result = redemption_service.redeem(db_session, "PROY-PROY-PROY-PROY", "U1")

    assert result.is_ok
    assert result.value.plan_id == "pro-yearly"

    order = db_session.query(Order).filter_by(user_id="U1").one()
    assert order.amount == 0
    assert order.status == "paid"
    assert order.payment_provider == redemption_service.REDEMPTION_PROVIDER

    db_session.refresh(previous)
    assert previous.status == "expired"
    active = db_session.query(Subscription).filter_by(user_id="U1", status="active").one()
    assert active.plan_id == "pro-yearly"
    assert active.subscription_no == order.subscription_no
    period = active.current_period_end - active.current_period_start
    assert period == timedelta(days=365)

    grant = db_session.query(CreditTransaction).filter_by(user_id="U1").one()
    assert grant.credits == 2000
    assert grant.expires_at == active.current_period_end
    assert grant.subscription_no == active.subscription_no


def test_membership_code_for_removed_plan_is_rejected(db_session):
    _add_code(db_session, "GONE-GONE-GONE-GONE", type="membership", plan_id="legacy-plan", membership_days=30)

    result = redemption_service.redeem(db_session, "GONE-GONE-GONE-GONE", "U1")

    assert result.kind == ErrorKind.INVALID_PLAN
    assert db_session.query(Order).count() == 0


def test_failure_after_lock_rolls_back_everything(db_session, mocker):
    code = _add_code(db_session, "FAIL-FAIL-FAIL-FAIL")
    mocker.patch("app.services.redemption.crud_credit.create_grant", side_effect=RuntimeError("storage down"))

    with pytest.raises(RuntimeError):
        redemption_service.redeem(db_session, "FAIL-FAIL-FAIL-FAIL", "U1")

    db_session.refresh(code)
    assert code.used_count == 0
    assert code.status == "active"
    assert db_session.query(RedemptionRecord).count() == 0


def test_list_codes_shows_masks_only(db_session):
    redemption_service.issue_credit_codes(db_session, credits=5, quantity=3)

    page = redemption_service.list_codes(db_session, page=1, size=2)

    assert page.total_items == 3
    assert page.total_pages == 2
    assert all("****" in item.code_preview for item in page.items)
