# app/services/commission.py

import json
import logging
import math
from decimal import Decimal
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ErrorKind, Ok, Err, Result
from app.crud import commission as crud_commission
from app.models.commission import Commission, Withdrawal
from app.models.order import Order
from app.schemas.commission import CommissionStats, PaginatedCommissions, PaginatedWithdrawals
from app.schemas.common import total_pages_for
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Заявки, сумма которых зарезервирована и недоступна для новой заявки
RESERVED_STATUSES = ["pending", "approved"]

WITHDRAWAL_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"paid", "rejected"},
    "paid": set(),
    "rejected": set(),
}


def calculate_commission(amount: int, rate: float | None = None) -> int:
    """Комиссия в центах, округляется вниз."""
    rate = settings.COMMISSION_RATE if rate is None else rate
    return math.floor(Decimal(amount) * Decimal(str(rate)))


def accrue_commission(
    db: Session,
    order: Order,
    referrer_id: str | None,
    commission_type: str = "one_time",
) -> Commission | None:
    """
    Начисляет комиссию партнеру за оплаченный заказ. Не коммитит:
    вызывается в той же транзакции, что и проведение платежа.
    Не более одной комиссии на (заказ, партнер).
    """
    if not referrer_id:
        return None
    amount = calculate_commission(order.amount or 0)
    if amount <= 0:
        return None
    if crud_commission.get_commission_for_order(db, order.order_no, referrer_id):
        logger.warning(f"Commission for order {order.order_no} already accrued to {referrer_id}. Skipping.")
        return None

    commission = Commission(
        user_id=referrer_id,
        order_id=order.id,
        order_no=order.order_no,
        amount=amount,
        currency=order.currency or settings.COMMISSION_CURRENCY,
        status="paid",
        type=commission_type,
        rate=f"{settings.COMMISSION_RATE * 100:g}%",
        description=f"Commission for order {order.order_no}",
    )
    db.add(commission)
    logger.info(f"Accrued {commission_type} commission {amount} {commission.currency} to {referrer_id} for order {order.order_no}")
    return commission


def get_stats(db: Session, user_id: str) -> CommissionStats:
    accrued = crud_commission.sum_accrued(db, user_id)
    withdrawn = crud_commission.sum_withdrawals(db, user_id, ["paid"])
    reserved = crud_commission.sum_withdrawals(db, user_id, RESERVED_STATUSES)
    return CommissionStats(
        accrued=accrued,
        withdrawn=withdrawn,
        reserved=reserved,
        available=accrued - withdrawn - reserved,
        currency=settings.COMMISSION_CURRENCY,
    )


def get_commissions(db: Session, user_id: str, page: int = 1, size: int = 20) -> PaginatedCommissions:
    skip = (page - 1) * size
    items = crud_commission.get_user_commissions(db, user_id, skip=skip, limit=size)
    total_items = crud_commission.count_user_commissions(db, user_id)
    return PaginatedCommissions(
        total_items=total_items,
        total_pages=total_pages_for(total_items, size),
        current_page=page,
        size=size,
        items=items,
    )


def get_user_withdrawals(db: Session, user_id: str, page: int = 1, size: int = 20) -> PaginatedWithdrawals:
    skip = (page - 1) * size
    items = crud_commission.get_user_withdrawals(db, user_id, skip=skip, limit=size)
    total_items = crud_commission.count_user_withdrawals(db, user_id)
    return PaginatedWithdrawals(
        total_items=total_items,
        total_pages=total_pages_for(total_items, size),
        current_page=page,
        size=size,
        items=items,
    )


def list_withdrawals(db: Session, status: str | None = None, page: int = 1, size: int = 20) -> PaginatedWithdrawals:
    """Список заявок для админ-панели."""
    skip = (page - 1) * size
    total_items = crud_commission.count_withdrawals(db, status=status)
    return PaginatedWithdrawals(
        total_items=total_items,
        total_pages=total_pages_for(total_items, size),
        current_page=page,
        size=size,
        items=crud_commission.get_withdrawals(db, status=status, skip=skip, limit=size),
    )


def request_withdrawal(
    db: Session,
    user_id: str,
    amount: int,
    method: str,
    payout_details: dict,
) -> Result[Withdrawal]:
    """
    Создает заявку на вывод. Строки комиссий партнера блокируются,
    поэтому параллельные заявки не могут вместе превысить доступный остаток.
    """
    if amount <= 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    try:
        crud_commission.lock_user_commissions(db, user_id)
        stats = get_stats(db, user_id)
        if amount > stats.available:
            db.rollback()
            logger.info(f"Withdrawal of {amount} rejected for {user_id}: available {stats.available}")
            return Err(ErrorKind.INSUFFICIENT_COMMISSION_BALANCE, f"available={stats.available}")

        withdrawal = Withdrawal(
            user_id=user_id,
            amount=amount,
            currency=settings.COMMISSION_CURRENCY,
            status="pending",
            method=method,
            payout_details=json.dumps(payout_details, ensure_ascii=False),
        )
        db.add(withdrawal)
        db.commit()
        db.refresh(withdrawal)
    except Exception:
        db.rollback()
        logger.error(f"Failed to create withdrawal for {user_id}", exc_info=True)
        raise
    logger.info(f"Withdrawal {withdrawal.id} of {amount} {withdrawal.currency} requested by {user_id}")
    return Ok(withdrawal)


def _review(db: Session, withdrawal_id: str, target: str, admin_id: str, note: str | None) -> Result[Withdrawal]:
    try:
        withdrawal = crud_commission.lock_withdrawal(db, withdrawal_id)
        if withdrawal is None:
            db.rollback()
            return Err(ErrorKind.WITHDRAWAL_NOT_FOUND)
        if target not in WITHDRAWAL_TRANSITIONS[withdrawal.status]:
            current = withdrawal.status
            db.rollback()
            return Err(ErrorKind.INVALID_WITHDRAWAL_TRANSITION, f"{current} -> {target}")

        now = utcnow()
        withdrawal.status = target
        withdrawal.reviewed_by = admin_id
        if note:
            withdrawal.note = note
        if target == "paid":
            withdrawal.paid_at = now
        else:
            withdrawal.processed_at = now
        db.commit()
        db.refresh(withdrawal)
    except Exception:
        db.rollback()
        logger.error(f"Failed to move withdrawal {withdrawal_id} to '{target}'", exc_info=True)
        raise
    logger.info(f"Withdrawal {withdrawal_id} moved to '{target}' by admin {admin_id}")
    return Ok(withdrawal)


def approve_withdrawal(db: Session, withdrawal_id: str, admin_id: str, note: str | None = None) -> Result[Withdrawal]:
    return _review(db, withdrawal_id, "approved", admin_id, note)


def confirm_payout(db: Session, withdrawal_id: str, admin_id: str, note: str | None = None) -> Result[Withdrawal]:
    return _review(db, withdrawal_id, "paid", admin_id, note)


def reject_withdrawal(db: Session, withdrawal_id: str, admin_id: str, note: str | None = None) -> Result[Withdrawal]:
    """Отклонение возвращает зарезервированную сумму в доступный остаток."""
    return _review(db, withdrawal_id, "rejected", admin_id, note)
