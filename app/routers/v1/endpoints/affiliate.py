# app/routers/v1/endpoints/affiliate.py

import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.dependencies import get_db, get_current_user, Principal
from app.routers.errors import unwrap
from app.schemas.commission import (
    CommissionStats, PaginatedCommissions, PaginatedWithdrawals, Withdrawal, WithdrawalCreate
)
from app.services import commission as commission_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/affiliate")


@router.get("/stats", response_model=CommissionStats)
def get_stats(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return commission_service.get_stats(db, current_user.user_id)


@router.get("/commissions", response_model=PaginatedCommissions)
def get_commissions(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return commission_service.get_commissions(db, current_user.user_id, page=page, size=size)


@router.get("/withdrawals", response_model=PaginatedWithdrawals)
def get_withdrawals(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return commission_service.get_user_withdrawals(db, current_user.user_id, page=page, size=size)


@router.post("/withdrawals", response_model=Withdrawal, status_code=status.HTTP_201_CREATED)
def create_withdrawal(
    payload: WithdrawalCreate,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Заявка на вывод. Сумма не может превышать доступный остаток."""
    return unwrap(commission_service.request_withdrawal(
        db,
        user_id=current_user.user_id,
        amount=payload.amount,
        method=payload.method,
        payout_details=payload.payout_details,
    ))
