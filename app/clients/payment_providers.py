# app/clients/payment_providers.py

import abc
import base64
import hashlib
import hmac
import json
import logging
from typing import Callable, Dict, List, Mapping

from pydantic import ValidationError

from app.models.order import Order
from app.models.subscription import Subscription
from app.schemas.payment import CheckoutSession, WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-payment-signature"


class WebhookVerificationError(Exception):
    """Подпись не сошлась или тело события не разбирается."""


class PaymentProvider(abc.ABC):
    """
    Единый интерфейс адаптера платежного провайдера.
    Сетевые вызовы (create_checkout, renew, cancel) асинхронные и никогда
    не выполняются внутри транзакции леджера.
    """
    name: str

    @abc.abstractmethod
    async def create_checkout(self, order: Order) -> CheckoutSession:
        ...

    @abc.abstractmethod
    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Проверяет подпись и возвращает нормализованное событие."""

    @abc.abstractmethod
    async def renew(self, subscription: Subscription) -> bool:
        ...

    @abc.abstractmethod
    async def cancel(self, subscription: Subscription) -> bool:
        ...


def sign_payload(secret: str, body: bytes) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode()


class ManualProvider(PaymentProvider):
    """
    Встроенный провайдер для ручных/внутренних платежей.
    События приходят уже в нормализованном виде и подписаны HMAC-SHA256 (base64)
    общим секретом PAYMENT_WEBHOOK_SECRET.
    """
    name = "manual"

    def __init__(self, webhook_secret: str):
        self.webhook_secret = webhook_secret

    async def create_checkout(self, order: Order) -> CheckoutSession:
        # Ручная оплата: внешней страницы нет, заказ ждет подтверждения веб-хуком
        return CheckoutSession(provider=self.name, order_no=order.order_no, session_id=f"manual_{order.order_no}")

    def verify_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        if not self.webhook_secret:
            logger.error("PAYMENT_WEBHOOK_SECRET is not configured. Rejecting manual payment webhook.")
            raise WebhookVerificationError("Webhook secret is not configured")

        signature = headers.get(SIGNATURE_HEADER)
        if not signature:
            raise WebhookVerificationError("Signature header missing")

        expected_signature = sign_payload(self.webhook_secret, body)
        if not hmac.compare_digest(expected_signature, signature):
            raise WebhookVerificationError("Invalid webhook signature")

        try:
            payload = json.loads(body)
            event = WebhookEvent.model_validate(payload)
        except (ValueError, ValidationError) as e:
            raise WebhookVerificationError(f"Malformed webhook body: {e}") from e

        if not event.event.raw:
            event.event.raw = payload
        logger.debug("Manual payment webhook signature verified successfully.")
        return event

    async def renew(self, subscription: Subscription) -> bool:
        logger.info(f"Manual provider: renewal of {subscription.subscription_no} is confirmed by webhook only.")
        return True

    async def cancel(self, subscription: Subscription) -> bool:
        logger.info(f"Manual provider: subscription {subscription.subscription_no} canceled locally.")
        return True


class ProviderRegistry:
    """
    Явный реестр адаптеров. Собирается один раз при старте приложения
    и хранится в app.state, глобального экземпляра нет.
    """
    def __init__(self):
        self._providers: Dict[str, PaymentProvider] = {}

    def register(self, provider: PaymentProvider):
        self._providers[provider.name] = provider
        logger.info(f"Payment provider '{provider.name}' registered.")

    def get(self, name: str) -> PaymentProvider | None:
        return self._providers.get((name or "").lower())

    def names(self) -> List[str]:
        return sorted(self._providers)


PROVIDER_FACTORIES: Dict[str, Callable[..., PaymentProvider]] = {
    "manual": lambda settings: ManualProvider(settings.PAYMENT_WEBHOOK_SECRET),
}


def build_registry(settings) -> ProviderRegistry:
    registry = ProviderRegistry()
    for name in settings.PAYMENT_PROVIDERS:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Payment provider '{name}' is enabled but has no adapter. Skipping.")
            continue
        registry.register(factory(settings))
    return registry
