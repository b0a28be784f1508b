# app/routers/v1/endpoints/admin/subscriptions.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.clients.payment_providers import ProviderRegistry
from app.dependencies import get_db, get_provider_registry, require_permission, Principal
from app.routers.errors import unwrap
from app.schemas.subscription import AssignMembershipRequest, MembershipAssignment, Subscription
from app.services import payment as payment_service
from app.services import subscription as subscription_service

router = APIRouter()

can_manage_subscriptions = require_permission("subscriptions.write")


@router.post("/assign", response_model=MembershipAssignment)
def assign_membership(
    payload: AssignMembershipRequest,
    db: Session = Depends(get_db),
    admin: Principal = Depends(can_manage_subscriptions),
):
    """
    [АДМИН] Вручную назначает пользователю тариф.
    Для 'free' все активные подписки пользователя гасятся.
    """
    return unwrap(subscription_service.assign_membership(
        db, user_id=payload.user_id, plan_id=payload.plan_id, admin_id=admin.user_id
    ))


@router.post("/{subscription_no}/renew", response_model=Subscription, status_code=status.HTTP_202_ACCEPTED)
async def request_renewal(
    subscription_no: str,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
    admin: Principal = Depends(can_manage_subscriptions),
):
    """[АДМИН] Просит провайдера провести продление. Кредиты придут вместе с веб-хуком."""
    return unwrap(await payment_service.request_renewal(db, registry, subscription_no))
