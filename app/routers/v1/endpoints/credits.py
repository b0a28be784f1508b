# app/routers/v1/endpoints/credits.py

import logging
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.limiter import limiter
from app.core.locales import SUCCESS_CODE_REDEEMED
from app.dependencies import get_db, get_current_user, Principal
from app.routers.errors import unwrap
from app.schemas.credit import CreditBalance, CreditHistory, RedeemRequest, RedeemResponse
from app.services import credit as credit_service
from app.services import redemption as redemption_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/credits")


@router.get("/balance", response_model=CreditBalance)
def get_balance(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Текущий баланс. Всегда пересчитывается из леджера."""
    return CreditBalance(
        user_id=current_user.user_id,
        balance=credit_service.get_balance(db, current_user.user_id),
    )


@router.get("/history", response_model=CreditHistory)
def get_history(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return credit_service.get_history(db, current_user.user_id, page=page, size=size)


@router.post("/redeem", response_model=RedeemResponse)
@limiter.limit(settings.REDEEM_RATE_LIMIT)
def redeem_code(
    request: Request,
    payload: RedeemRequest,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Активирует код на кредиты или членство."""
    outcome = unwrap(redemption_service.redeem(db, payload.code, current_user.user_id))
    return RedeemResponse(
        credits=outcome.credits,
        type=outcome.type,
        plan_id=outcome.plan_id,
        message=SUCCESS_CODE_REDEEMED.format(credits=outcome.credits),
    )
