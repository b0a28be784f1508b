# app/schemas/payment.py
import json
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Literal

PAYLOAD_VERSION = 1

# Статусы, которые понимает процессор платежных событий
PAYMENT_STATUSES = ("SUCCESS", "FAILED", "CANCELED", "PROCESSING")


class PaymentInfo(BaseModel):
    transaction_id: str | None = None
    payment_amount: int | None = None
    payment_currency: str | None = None
    payment_email: str | None = None
    paid_at: datetime | None = None


class SubscriptionInfo(BaseModel):
    subscription_id: str
    status: str = "active"
    interval: str | None = None
    interval_count: int = 1
    current_period_start: datetime
    current_period_end: datetime
    amount: int | None = None
    currency: str | None = None


class PaymentEvent(BaseModel):
    """
    Нормализованное событие провайдера. Статус намеренно строка, а не Literal:
    неизвестный статус должен дойти до процессора и остановить обработку.
    """
    order_no: str
    status: str
    payment_info: PaymentInfo | None = None
    subscription_info: SubscriptionInfo | None = None
    # "Сырые" данные провайдера. Сохраняются как есть, ledger-поля из них не читаются
    raw: Dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    event_type: Literal[
        "checkout.completed",
        "subscription.renewed",
        "subscription.updated",
        "subscription.canceled",
    ]
    event: PaymentEvent


class CheckoutSession(BaseModel):
    provider: str
    order_no: str
    session_id: str
    checkout_url: str | None = None


class ProviderPayload(BaseModel):
    """Версионированная обертка для ответа провайдера: {"v": 1, "provider": ..., "data": ...}."""
    v: int = PAYLOAD_VERSION
    provider: str
    data: Dict[str, Any] = Field(default_factory=dict)

    def dump(self) -> str:
        return json.dumps(self.model_dump(), default=str)

    @classmethod
    def load(cls, raw: str | None) -> "ProviderPayload | None":
        if not raw:
            return None
        return cls.model_validate(json.loads(raw))


class PaymentResult(BaseModel):
    # order_no для checkout, subscription_no для событий подписки
    reference: str
    status: str
    # False - событие подтверждено, но ничего не изменило (дубликат или устаревшее)
    applied: bool = True
