# app/routers/v1/endpoints/admin/redemption_codes.py

import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.dependencies import get_db, require_permission, Principal
from app.routers.errors import unwrap
from app.schemas.redemption import (
    IssueCreditCodesRequest, IssueMembershipCodesRequest, IssuedCodes, PaginatedRedemptionCodes
)
from app.services import redemption as redemption_service

logger = logging.getLogger(__name__)

router = APIRouter()
can_write_credits = require_permission("credits.write")


@router.get("", response_model=PaginatedRedemptionCodes)
def list_codes(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_write_credits),
):
    """
    [АДМИН] Список выпущенных кодов. Открытый текст не хранится - только маска.
    """
    return redemption_service.list_codes(db, page=page, size=size)


@router.post("/credits", response_model=IssuedCodes, status_code=status.HTTP_201_CREATED)
def issue_credit_codes(
    payload: IssueCreditCodesRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_write_credits),
):
    """
    [АДМИН] Выпускает пачку кодов на кредиты. Коды возвращаются только в этом ответе.
    """
    return unwrap(redemption_service.issue_credit_codes(
        db,
        credits=payload.credits,
        quantity=payload.quantity,
        max_uses=payload.max_uses,
        validity_days=payload.validity_days,
        expires_at=payload.expires_at,
        created_by=admin.user_id,
    ))


@router.post("/membership", response_model=IssuedCodes, status_code=status.HTTP_201_CREATED)
def issue_membership_codes(
    payload: IssueMembershipCodesRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_write_credits),
):
    """[АДМИН] Выпускает коды на членство в тарифе."""
    return unwrap(redemption_service.issue_membership_codes(
        db,
        plan_id=payload.plan_id,
        quantity=payload.quantity,
        membership_days=payload.membership_days,
        expires_at=payload.expires_at,
        created_by=admin.user_id,
    ))
