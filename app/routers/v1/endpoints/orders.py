# app/routers/v1/endpoints/orders.py

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.clients.payment_providers import ProviderRegistry
from app.dependencies import get_db, get_current_user, get_provider_registry, Principal
from app.routers.errors import unwrap
from app.schemas.order import CheckoutRequest, Order
from app.schemas.payment import CheckoutSession
from app.services import payment as payment_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders")


@router.post("/checkout", response_model=CheckoutSession, status_code=status.HTTP_201_CREATED)
async def create_checkout(
    payload: CheckoutRequest,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """
    Создает заказ 'pending' по цене тарифа и открывает сессию оплаты у провайдера.
    Заказ станет 'paid' только после веб-хука.
    """
    return unwrap(await payment_service.start_checkout(
        db,
        registry,
        payload.provider,
        user_id=current_user.user_id,
        product_id=payload.product_id,
        payment_type=payload.payment_type,
        referrer_id=payload.referrer_id,
    ))


@router.get("/{order_no}", response_model=Order)
def get_order(
    order_no: str,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return unwrap(payment_service.get_user_order(db, current_user.user_id, order_no))
