# app/routers/v1/endpoints/admin/withdrawals.py

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_db, require_permission, Principal
from app.routers.errors import unwrap
from app.schemas.commission import PaginatedWithdrawals, Withdrawal, WithdrawalReview
from app.services import commission as commission_service

logger = logging.getLogger(__name__)

router = APIRouter()
can_review = require_permission("withdrawals.review")


@router.get("", response_model=PaginatedWithdrawals)
def list_withdrawals(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: str | None = Query(None, description="pending, approved, paid, rejected или all"),
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_review),
):
    """[АДМИН] Заявки на вывод с фильтром по статусу."""
    return commission_service.list_withdrawals(db, status=status, page=page, size=size)


@router.post("/{withdrawal_id}/approve", response_model=Withdrawal)
def approve_withdrawal(
    withdrawal_id: str,
    payload: WithdrawalReview | None = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_review),
):
    note = payload.note if payload else None
    return unwrap(commission_service.approve_withdrawal(db, withdrawal_id, admin.user_id, note))


@router.post("/{withdrawal_id}/pay", response_model=Withdrawal)
def confirm_payout(
    withdrawal_id: str,
    payload: WithdrawalReview | None = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_review),
):
    """[АДМИН] Подтверждает, что деньги по одобренной заявке отправлены."""
    note = payload.note if payload else None
    return unwrap(commission_service.confirm_payout(db, withdrawal_id, admin.user_id, note))


@router.post("/{withdrawal_id}/reject", response_model=Withdrawal)
def reject_withdrawal(
    withdrawal_id: str,
    payload: WithdrawalReview | None = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_review),
):
    note = payload.note if payload else None
    return unwrap(commission_service.reject_withdrawal(db, withdrawal_id, admin.user_id, note))
