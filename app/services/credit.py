# app/services/credit.py

import json
import logging
from datetime import datetime, timedelta
from typing import List
from sqlalchemy.orm import Session

from app.crud import credit as crud_credit
from app.core.errors import ErrorKind, Ok, Err, Result
from app.models.credit import CreditTransaction
from app.schemas.common import total_pages_for
from app.schemas.credit import CreditHistory, LeaderboardEntry
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def calculate_credit_expiration_time(
    valid_days: int | None,
    period_end: datetime | None = None,
    now: datetime | None = None,
) -> datetime | None:
    """
    Вычисляет срок сгорания начисления.
    valid_days <= 0 или None - кредиты бессрочные. Если передан конец периода
    подписки, кредиты сгорают вместе с ним.
    """
    if not valid_days or valid_days <= 0:
        return None
    if period_end is not None:
        return period_end
    return (now or utcnow()) + timedelta(days=valid_days)


def get_balance(db: Session, user_id: str) -> int:
    return crud_credit.get_user_balance(db, user_id=user_id)


def get_history(db: Session, user_id: str, page: int = 1, size: int = 20) -> CreditHistory:
    """Баланс + пагинированная история начислений и списаний."""
    skip = (page - 1) * size
    total_items = crud_credit.count_user_transactions(db, user_id)
    return CreditHistory(
        balance=get_balance(db, user_id),
        total_items=total_items,
        total_pages=total_pages_for(total_items, size),
        current_page=page,
        size=size,
        items=crud_credit.get_user_transactions(db, user_id, skip=skip, limit=size),
    )


def grant_credits(
    db: Session,
    user_id: str,
    credits: int,
    scene: str,
    expires_at: datetime | None = None,
    description: str | None = None,
) -> Result[CreditTransaction]:
    """Самостоятельное начисление (своя транзакция)."""
    if credits <= 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    try:
        transaction = crud_credit.create_grant(
            db, user_id=user_id, credits=credits, scene=scene,
            expires_at=expires_at, description=description,
        )
        db.commit()
        db.refresh(transaction)
    except Exception:
        db.rollback()
        logger.error(f"Failed to grant {credits} credits to user {user_id}", exc_info=True)
        raise
    logger.info(f"Granted {credits} credits to user {user_id} (scene={scene}, expires_at={expires_at})")
    return Ok(transaction)


def refund_credits(
    db: Session,
    user_id: str,
    credits: int,
    description: str = "Refund for failed generation",
) -> Result[CreditTransaction]:
    """Возврат кредитов за неудавшуюся генерацию. Возвращенные кредиты не сгорают."""
    return grant_credits(db, user_id, credits, scene="refund", description=description)


def _draw_down(
    db: Session,
    user_id: str,
    credits: int,
    scene: str,
    description: str | None = None,
) -> Result[CreditTransaction]:
    """
    Списывает кредиты в рамках ТЕКУЩЕЙ транзакции, не фиксируя ее.
    При нехватке ничего не меняет и возвращает Err.
    """
    now = utcnow()
    grants = crud_credit.lock_active_grants(db, user_id=user_id, now=now)
    available = sum(g.remaining_credits for g in grants)
    if available < credits:
        logger.info(f"User {user_id} has {available} credits, {credits} requested. Consume rejected.")
        return Err(ErrorKind.INSUFFICIENT_CREDITS, f"available={available}")

    left = credits
    breakdown = []
    for grant in grants:
        if left <= 0:
            break
        take = min(grant.remaining_credits, left)
        grant.remaining_credits -= take
        left -= take
        breakdown.append({
            "transaction_no": grant.transaction_no,
            "credits": take,
            "expires_at": grant.expires_at.isoformat() if grant.expires_at else None,
        })

    transaction = crud_credit.create_consume(
        db, user_id=user_id, credits=credits, scene=scene,
        consumed_detail=json.dumps(breakdown), description=description,
    )
    db.flush()
    logger.info(
        f"Consumed {credits} credits from user {user_id} across {len(breakdown)} grant(s). "
        f"Balance before: {available}, after (uncommitted): {available - credits}"
    )
    return Ok(transaction)


def consume_credits(
    db: Session,
    user_id: str,
    credits: int,
    scene: str,
    description: str | None = None,
) -> Result[CreditTransaction]:
    """
    Безопасно списывает кредиты: блокирует действующие начисления (`SELECT ... FOR UPDATE`),
    тратит сначала те, что сгорают раньше, бессрочные - последними.
    Либо списывается вся сумма, либо ничего.
    """
    if credits <= 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    try:
        result = _draw_down(db, user_id, credits, scene, description)
        if not result.is_ok:
            db.rollback()
            return result
        db.commit()
        db.refresh(result.value)
        return result
    except Exception:
        db.rollback()
        logger.error(f"Failed to consume {credits} credits for user {user_id}", exc_info=True)
        raise


def adjust_credits(
    db: Session,
    user_id: str,
    credits: int,
    admin_id: str,
    description: str | None = None,
    valid_days: int | None = None,
) -> Result[CreditTransaction]:
    """
    Ручная корректировка баланса администратором.
    Положительное значение - подарок (scene 'gift'), отрицательное - списание (scene 'admin').
    """
    if credits == 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    note = description or f"Adjusted by admin {admin_id}"
    if credits > 0:
        expires_at = calculate_credit_expiration_time(valid_days) if valid_days is not None else None
        result = grant_credits(db, user_id, credits, scene="gift", expires_at=expires_at, description=note)
    else:
        result = consume_credits(db, user_id, -credits, scene="admin", description=note)
    if result.is_ok:
        logger.info(f"Admin {admin_id} adjusted credits of user {user_id} by {credits}")
    return result


def get_leaderboard(db: Session, limit: int = 10) -> List[LeaderboardEntry]:
    rows = crud_credit.get_top_users_by_balance(db, limit=limit)
    return [
        LeaderboardEntry(rank=i + 1, user_id=user_id, balance=int(total))
        for i, (user_id, total) in enumerate(rows)
    ]
