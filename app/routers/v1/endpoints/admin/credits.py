# app/routers/v1/endpoints/admin/credits.py

from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_db, require_permission, Principal
from app.routers.errors import unwrap
from app.schemas.credit import (
    AdminAdjustCreditsRequest, AdminRefundCreditsRequest, CreditTransaction, LeaderboardEntry
)
from app.services import credit as credit_service

router = APIRouter()


@router.post("/adjust", response_model=CreditTransaction)
def adjust_credits(
    payload: AdminAdjustCreditsRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_permission("credits.write")),
):
    """
    [АДМИН] Ручная корректировка баланса: подарок (> 0) или списание (< 0).
    """
    return unwrap(credit_service.adjust_credits(
        db,
        user_id=payload.user_id,
        credits=payload.credits,
        admin_id=admin.user_id,
        description=payload.description,
        valid_days=payload.valid_days,
    ))


@router.post("/refund", response_model=CreditTransaction)
def refund_credits(
    payload: AdminRefundCreditsRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_permission("credits.write")),
):
    """[АДМИН] Бессрочный возврат кредитов за неудавшуюся генерацию."""
    return unwrap(credit_service.refund_credits(
        db, user_id=payload.user_id, credits=payload.credits, description=payload.description,
    ))


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_permission("credits.read")),
):
    return credit_service.get_leaderboard(db, limit=limit)
