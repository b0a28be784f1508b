# app/crud/credit.py

from datetime import datetime
from typing import List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func, or_

from app.models.credit import CreditTransaction
from app.utils.clock import utcnow
from app.utils.identifiers import new_transaction_no

# --- Базовые CRUD-операции ---

def create_grant(
    db: Session,
    user_id: str,
    credits: int,
    scene: str,
    expires_at: datetime | None = None,
    order_no: str | None = None,
    subscription_no: str | None = None,
    description: str | None = None,
    billing_month: int | None = None,
    billing_period_start: datetime | None = None,
) -> CreditTransaction:
    """
    Создает начисление и добавляет его в сессию.
    Требует внешнего вызова db.commit().
    """
    transaction = CreditTransaction(
        transaction_no=new_transaction_no(),
        user_id=user_id,
        type="grant",
        scene=scene,
        credits=credits,
        remaining_credits=credits,
        expires_at=expires_at,
        order_no=order_no,
        subscription_no=subscription_no,
        description=description,
        billing_month=billing_month,
        billing_period_start=billing_period_start,
        created_at=utcnow(),
    )
    db.add(transaction)
    return transaction

def create_consume(
    db: Session,
    user_id: str,
    credits: int,
    scene: str,
    consumed_detail: str,
    description: str | None = None,
) -> CreditTransaction:
    """Создает запись списания. `credits` передается положительным, хранится со знаком минус."""
    transaction = CreditTransaction(
        transaction_no=new_transaction_no(),
        user_id=user_id,
        type="consume",
        scene=scene,
        credits=-credits,
        remaining_credits=0,
        consumed_detail=consumed_detail,
        description=description,
        created_at=utcnow(),
    )
    db.add(transaction)
    return transaction

def get_user_transactions(
    db: Session,
    user_id: str,
    skip: int = 0,
    limit: int = 20
) -> List[CreditTransaction]:
    """Получает пагинированный список ВСЕХ записей пользователя (от новых к старым)."""
    return db.query(CreditTransaction).filter(
        CreditTransaction.user_id == user_id
    ).order_by(CreditTransaction.created_at.desc()).offset(skip).limit(limit).all()

def count_user_transactions(db: Session, user_id: str) -> int:
    return db.query(CreditTransaction).filter(CreditTransaction.user_id == user_id).count()

# --- Активные начисления ---

def _active_grants_query(db: Session, user_id: str, now: datetime):
    return db.query(CreditTransaction).filter(
        CreditTransaction.user_id == user_id,
        CreditTransaction.type == "grant",
        CreditTransaction.status == "active",
        CreditTransaction.remaining_credits > 0,
        or_(
            CreditTransaction.expires_at.is_(None),
            CreditTransaction.expires_at > now,
        ),
    )

def lock_active_grants(db: Session, user_id: str, now: datetime) -> List[CreditTransaction]:
    """
    Выбирает и БЛОКИРУЕТ (`SELECT ... FOR UPDATE`) действующие начисления пользователя
    в порядке "раньше сгорает - раньше тратится". Бессрочные идут последними.
    """
    return _active_grants_query(db, user_id, now).order_by(
        CreditTransaction.expires_at.asc().nulls_last(),
        CreditTransaction.created_at.asc(),
    ).with_for_update().all()

def get_user_balance(db: Session, user_id: str, now: datetime | None = None) -> int:
    """Баланс = сумма остатков по несгоревшим начислениям. Всегда пересчитывается из леджера."""
    now = now or utcnow()
    balance = db.query(func.sum(CreditTransaction.remaining_credits)).filter(
        CreditTransaction.user_id == user_id,
        CreditTransaction.type == "grant",
        CreditTransaction.status == "active",
        CreditTransaction.remaining_credits > 0,
        or_(
            CreditTransaction.expires_at.is_(None),
            CreditTransaction.expires_at > now,
        ),
    ).scalar()
    return int(balance or 0)

def get_top_users_by_balance(db: Session, limit: int = 10) -> List[Tuple[str, int]]:
    """Рейтинг пользователей по текущему остатку кредитов."""
    now = utcnow()
    total = func.sum(CreditTransaction.remaining_credits)
    return db.query(CreditTransaction.user_id, total.label("total")).filter(
        CreditTransaction.type == "grant",
        CreditTransaction.status == "active",
        CreditTransaction.remaining_credits > 0,
        or_(
            CreditTransaction.expires_at.is_(None),
            CreditTransaction.expires_at > now,
        ),
    ).group_by(CreditTransaction.user_id).order_by(total.desc()).limit(limit).all()

# --- Ежемесячные начисления годовых подписок ---

def get_last_billing_month(db: Session, subscription_no: str, period_start: datetime) -> int:
    """
    Последний номер месяца, за который уже выданы кредиты в ТЕКУЩЕМ периоде подписки
    (0 - только первый). После продления счет месяцев начинается заново.
    """
    last = db.query(func.max(CreditTransaction.billing_month)).filter(
        CreditTransaction.subscription_no == subscription_no,
        CreditTransaction.billing_period_start == period_start,
        CreditTransaction.type == "grant",
        CreditTransaction.scene == "subscription",
    ).scalar()
    return int(last or 0)
