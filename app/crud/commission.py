# app/crud/commission.py
from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.models.commission import Commission, Withdrawal


def get_commission_for_order(db: Session, order_no: str, user_id: str) -> Commission | None:
    return db.query(Commission).filter_by(order_no=order_no, user_id=user_id).first()

def get_user_commissions(db: Session, user_id: str, skip: int = 0, limit: int = 20) -> List[Commission]:
    return db.query(Commission).filter(
        Commission.user_id == user_id
    ).order_by(Commission.created_at.desc()).offset(skip).limit(limit).all()

def lock_user_commissions(db: Session, user_id: str) -> List[Commission]:
    """
    Блокирует все строки комиссий партнера. Две одновременные заявки на вывод
    от одного партнера выстраиваются здесь в очередь.
    """
    return db.query(Commission).filter(Commission.user_id == user_id).with_for_update().all()

def sum_accrued(db: Session, user_id: str) -> int:
    """Сумма комиссий, доступных к выводу (статус 'paid')."""
    total = db.query(func.sum(Commission.amount)).filter(
        Commission.user_id == user_id,
        Commission.status == "paid",
    ).scalar()
    return int(total or 0)

def sum_withdrawals(db: Session, user_id: str, statuses: List[str]) -> int:
    total = db.query(func.sum(Withdrawal.amount)).filter(
        Withdrawal.user_id == user_id,
        Withdrawal.status.in_(statuses),
    ).scalar()
    return int(total or 0)

def get_user_withdrawals(db: Session, user_id: str, skip: int = 0, limit: int = 20) -> List[Withdrawal]:
    return db.query(Withdrawal).filter(
        Withdrawal.user_id == user_id
    ).order_by(Withdrawal.created_at.desc()).offset(skip).limit(limit).all()

def get_withdrawals(db: Session, status: str | None = None, skip: int = 0, limit: int = 20) -> List[Withdrawal]:
    query = db.query(Withdrawal)
    if status and status != "all":
        query = query.filter(Withdrawal.status == status)
    return query.order_by(Withdrawal.created_at.desc()).offset(skip).limit(limit).all()

def count_withdrawals(db: Session, status: str | None = None) -> int:
    query = db.query(Withdrawal)
    if status and status != "all":
        query = query.filter(Withdrawal.status == status)
    return query.count()

def lock_withdrawal(db: Session, withdrawal_id: str) -> Withdrawal | None:
    return db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).with_for_update().first()

def count_user_commissions(db: Session, user_id: str) -> int:
    return db.query(Commission).filter(Commission.user_id == user_id).count()

def count_user_withdrawals(db: Session, user_id: str) -> int:
    return db.query(Withdrawal).filter(Withdrawal.user_id == user_id).count()
