# app/routers/v1/endpoints/subscriptions.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.clients.payment_providers import ProviderRegistry
from app.dependencies import get_db, get_current_user, get_provider_registry, Principal
from app.routers.errors import unwrap
from app.schemas.subscription import Subscription
from app.services import payment as payment_service
from app.services import subscription as subscription_service

router = APIRouter(prefix="/subscriptions")


@router.get("/current", response_model=Subscription | None)
def get_current_subscription(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Активная подписка пользователя или null."""
    return subscription_service.get_current_subscription(db, current_user.user_id)


@router.post("/current/cancel", response_model=Subscription)
async def cancel_current_subscription(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """Отменяет автопродление. Доступ сохраняется до конца оплаченного периода."""
    return unwrap(await payment_service.request_cancel(db, registry, current_user.user_id))
