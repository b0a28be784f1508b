# app/routers/webhooks.py

import logging
from fastapi import APIRouter, Request, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.clients.payment_providers import ProviderRegistry, WebhookVerificationError
from app.dependencies import get_db, get_provider_registry
from app.routers.errors import http_error
from app.services import payment as payment_service

logger = logging.getLogger(__name__)

# Подключается в main.py С префиксом /internal/webhooks
payments_router = APIRouter()


@payments_router.post("/payments/{provider}")
async def payment_webhook(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
):
    """
    Принимает событие провайдера, проверяет подпись через адаптер
    и передает нормализованное событие процессору платежей.
    """
    adapter = registry.get(provider)
    if adapter is None:
        logger.warning(f"Webhook for unknown or disabled payment provider '{provider}'.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown payment provider")

    raw_body = await request.body()
    try:
        webhook_event = adapter.verify_webhook(raw_body, request.headers)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected '{provider}' webhook: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    logger.info(f"Received '{webhook_event.event_type}' from '{provider}' for {webhook_event.event.order_no}")
    result = payment_service.process_webhook_event(db, webhook_event, adapter.name)
    if not result.is_ok:
        raise http_error(result)

    return {"status": "ok", "result": result.value.model_dump()}
