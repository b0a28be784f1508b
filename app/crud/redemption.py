# app/crud/redemption.py
from typing import List
from sqlalchemy.orm import Session

from app.models.redemption import RedemptionCode, RedemptionRecord


def lock_code_by_hash(db: Session, code_hash: str) -> RedemptionCode | None:
    """
    Находит код и БЛОКИРУЕТ его строку до конца транзакции.
    Параллельные активации того же кода выстраиваются в очередь на этой блокировке.
    """
    return db.query(RedemptionCode).filter(
        RedemptionCode.code_hash == code_hash
    ).with_for_update().first()

def code_hash_exists(db: Session, code_hash: str) -> bool:
    return db.query(RedemptionCode.id).filter(RedemptionCode.code_hash == code_hash).first() is not None

def get_record(db: Session, code_id: str, user_id: str) -> RedemptionRecord | None:
    return db.query(RedemptionRecord).filter(
        RedemptionRecord.code_id == code_id,
        RedemptionRecord.user_id == user_id,
    ).first()

def create_record(db: Session, code_id: str, user_id: str, redeemed_at) -> RedemptionRecord:
    record = RedemptionRecord(code_id=code_id, user_id=user_id, redeemed_at=redeemed_at)
    db.add(record)
    return record

def get_codes(db: Session, skip: int = 0, limit: int = 20) -> List[RedemptionCode]:
    """Список выпущенных кодов (от новых к старым)."""
    return db.query(RedemptionCode).order_by(
        RedemptionCode.created_at.desc()
    ).offset(skip).limit(limit).all()

def count_codes(db: Session) -> int:
    return db.query(RedemptionCode).count()
