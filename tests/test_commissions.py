# tests/test_commissions.py

import json

import pytest

from app.core.errors import ErrorKind
from app.models.commission import Commission
from app.services import commission as commission_service


def _accrue(db, user_id="AFF1", amount=10000, status="paid", order_no="ORD1"):
    db.add(Commission(user_id=user_id, order_id=order_no, order_no=order_no, amount=amount, status=status))
    db.commit()


@pytest.mark.parametrize("amount, rate, expected", [
    (1999, 0.20, 399),
    (1000, 0.20, 200),
    (1, 0.20, 0),
    (333, 0.15, 49),
])
def test_calculate_commission_rounds_down(amount, rate, expected):
    assert commission_service.calculate_commission(amount, rate) == expected


def test_available_reserves_pending_and_approved(db_session):
    _accrue(db_session, amount=10000)
    _accrue(db_session, amount=500, status="pending", order_no="ORD2")

    first = commission_service.request_withdrawal(db_session, "AFF1", 3000, "paypal", {"email": "a@b.c"})
    assert first.is_ok
    commission_service.approve_withdrawal(db_session, first.value.id, admin_id="root-admin")
    commission_service.request_withdrawal(db_session, "AFF1", 2000, "bank", {"iban": "DE00"})

    stats = commission_service.get_stats(db_session, "AFF1")
    assert stats.accrued == 10000
    assert stats.reserved == 5000
    assert stats.withdrawn == 0
    assert stats.available == 5000


def test_withdrawals_cannot_jointly_exceed_available(db_session):
    _accrue(db_session, amount=1000)

    assert commission_service.request_withdrawal(db_session, "AFF1", 700, "paypal", {}).is_ok
    second = commission_service.request_withdrawal(db_session, "AFF1", 400, "paypal", {})

    assert second.kind == ErrorKind.INSUFFICIENT_COMMISSION_BALANCE


def test_approve_then_pay_moves_amount_to_withdrawn(db_session):
    _accrue(db_session, amount=1000)
    withdrawal = commission_service.request_withdrawal(
        db_session, "AFF1", 600, "crypto", {"wallet": "0xabc"}
    ).value
    assert json.loads(withdrawal.payout_details) == {"wallet": "0xabc"}

    approved = commission_service.approve_withdrawal(db_session, withdrawal.id, "root-admin", note="ok")
    paid = commission_service.confirm_payout(db_session, withdrawal.id, "root-admin")

    assert approved.value.status == "approved"
    assert paid.value.status == "paid"
    assert paid.value.paid_at is not None
    assert paid.value.reviewed_by == "root-admin"
    stats = commission_service.get_stats(db_session, "AFF1")
    assert (stats.withdrawn, stats.reserved, stats.available) == (600, 0, 400)


def test_reject_returns_reserved_amount(db_session):
    _accrue(db_session, amount=1000)
    withdrawal = commission_service.request_withdrawal(db_session, "AFF1", 1000, "paypal", {}).value

    result = commission_service.reject_withdrawal(db_session, withdrawal.id, "root-admin", note="wrong email")

    assert result.value.status == "rejected"
    assert commission_service.get_stats(db_session, "AFF1").available == 1000


@pytest.mark.parametrize("steps, target", [
    ([], "pay"),
    (["reject"], "approve"),
    (["approve", "pay"], "reject"),
])
def test_invalid_withdrawal_transitions(db_session, steps, target):
    _accrue(db_session, amount=1000)
    withdrawal = commission_service.request_withdrawal(db_session, "AFF1", 100, "paypal", {}).value
    actions = {
        "approve": commission_service.approve_withdrawal,
        "pay": commission_service.confirm_payout,
        "reject": commission_service.reject_withdrawal,
    }
    for step in steps:
        assert actions[step](db_session, withdrawal.id, "root-admin").is_ok

    result = actions[target](db_session, withdrawal.id, "root-admin")

    assert result.kind == ErrorKind.INVALID_WITHDRAWAL_TRANSITION


def test_unknown_withdrawal(db_session):
    assert commission_service.approve_withdrawal(db_session, "nope", "root-admin").kind == ErrorKind.WITHDRAWAL_NOT_FOUND


def test_list_withdrawals_filters_by_status(db_session):
    _accrue(db_session, amount=1000)
    first = commission_service.request_withdrawal(db_session, "AFF1", 100, "paypal", {}).value
    commission_service.request_withdrawal(db_session, "AFF1", 100, "paypal", {})
    commission_service.approve_withdrawal(db_session, first.id, "root-admin")

    assert commission_service.list_withdrawals(db_session, status="pending").total_items == 1
    assert commission_service.list_withdrawals(db_session, status="all").total_items == 2
    assert commission_service.get_user_withdrawals(db_session, "AFF1").total_items == 2
