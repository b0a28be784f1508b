# app/services/payment.py

"""
Процессор платежных событий.

Каждое событие применяется в ОДНОЙ транзакции с блокировкой строки заказа
(или подписки). Повторная доставка того же события - подтвержденный no-op.
"""

import logging
from datetime import timedelta
from sqlalchemy.orm import Session

from app.clients.payment_providers import ProviderRegistry
from app.core.config import settings
from app.core.errors import ErrorKind, Ok, Err, Result, UnrecognizedEventStatus
from app.crud import credit as crud_credit
from app.crud import order as crud_order
from app.crud import subscription as crud_subscription
from app.models.order import Order
from app.models.subscription import Subscription
from app.schemas.payment import (
    CheckoutSession, PaymentEvent, PaymentResult, ProviderPayload, PAYMENT_STATUSES, WebhookEvent
)
from app.services import subscription as subscription_service
from app.services.commission import accrue_commission
from app.services.credit import calculate_credit_expiration_time
from app.utils.clock import utcnow, to_naive_utc
from app.utils.identifiers import new_order_no

logger = logging.getLogger(__name__)

# Сколько дней действует "подписка" при разовой покупке тарифа с членством, если у заказа не задан срок
ONE_TIME_MEMBERSHIP_DAYS = 30


def _ensure_known_status(event: PaymentEvent) -> str:
    if event.status not in PAYMENT_STATUSES:
        logger.critical(f"Unrecognized payment status '{event.status}' for {event.order_no}. Aborting.")
        raise UnrecognizedEventStatus(event.order_no, event.status)
    return event.status


def _payload(provider: str, event: PaymentEvent) -> str:
    return ProviderPayload(provider=provider, data=event.raw).dump()


# --- Создание заказа ---

def create_order(
    db: Session,
    *,
    user_id: str,
    product_id: str,
    payment_provider: str,
    amount: int | None = None,
    currency: str = "USD",
    payment_type: str = "one_time",
    referrer_id: str | None = None,
) -> Result[Order]:
    """
    Создает заказ в статусе 'pending'. Количество и срок кредитов берутся
    только из каталога тарифов, а не из запроса клиента. Без явной суммы
    используется цена тарифа.
    """
    plan = settings.PLANS.get(product_id)
    if not plan:
        return Err(ErrorKind.INVALID_PLAN, product_id)
    if amount is None:
        amount = int(plan.get("price") or 0)
    if amount < 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    try:
        order = Order(
            order_no=new_order_no(),
            user_id=user_id,
            status="pending",
            amount=amount,
            currency=currency,
            product_id=product_id,
            product_name=product_id,
            payment_type=payment_type,
            payment_interval=plan.get("interval"),
            payment_provider=payment_provider,
            credits_amount=int(plan.get("credits", 0)),
            credits_valid_days=plan.get("valid_days"),
            referrer_id=referrer_id if referrer_id != user_id else None,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        logger.error(f"Failed to create order for user {user_id}", exc_info=True)
        raise
    logger.info(f"Created pending order {order.order_no} ({product_id}, {amount} {currency}) for user {user_id}")
    return Ok(order)


async def start_checkout(
    db: Session,
    registry: ProviderRegistry,
    provider_name: str,
    **order_fields,
) -> Result[CheckoutSession]:
    """Создает заказ и ПОСЛЕ коммита обращается к провайдеру."""
    provider = registry.get(provider_name)
    if provider is None:
        return Err(ErrorKind.UNKNOWN_PROVIDER, provider_name)
    result = create_order(db, payment_provider=provider.name, **order_fields)
    if not result.is_ok:
        return result
    session = await provider.create_checkout(result.value)
    return Ok(session)


def get_user_order(db: Session, user_id: str, order_no: str) -> Result[Order]:
    """Заказ по номеру. Чужие заказы неотличимы от несуществующих."""
    order = crud_order.get_order_by_no(db, order_no)
    if order is None or order.user_id != user_id:
        return Err(ErrorKind.ORDER_NOT_FOUND, order_no)
    return Ok(order)


# --- Запросы к провайдеру по подписке ---

async def request_cancel(db: Session, registry: ProviderRegistry, user_id: str) -> Result[Subscription]:
    """
    Пользователь отменяет текущую подписку. Сначала отмена у провайдера (вне транзакции),
    затем active -> canceled локально. Оплаченный период остается в силе.
    Поздний веб-хук об отмене будет подтвержденным no-op.
    """
    subscription = crud_subscription.get_active_subscription(db, user_id)
    if subscription is None:
        return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, user_id)
    provider = registry.get(subscription.payment_provider)
    if provider is None:
        return Err(ErrorKind.UNKNOWN_PROVIDER, subscription.payment_provider or "")

    subscription_pk = subscription.id
    if not await provider.cancel(subscription):
        logger.warning(f"Provider '{provider.name}' refused to cancel subscription {subscription.subscription_no}.")
        return Err(ErrorKind.PROVIDER_ERROR, provider.name)

    try:
        subscription = crud_subscription.lock_subscription(db, subscription_pk)
        if subscription is None or subscription.status != subscription_service.ACTIVE:
            db.rollback()
            return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, user_id)
        subscription_service.cancel(subscription)
        db.commit()
        db.refresh(subscription)
    except Exception:
        db.rollback()
        logger.error(f"Failed to cancel subscription {subscription_pk} of user {user_id}", exc_info=True)
        raise

    logger.info(f"User {user_id} canceled subscription {subscription.subscription_no} via '{provider.name}'.")
    return Ok(subscription)


async def request_renewal(db: Session, registry: ProviderRegistry, subscription_no: str) -> Result[Subscription]:
    """
    Просит провайдера продлить подписку. Леджер здесь не меняется:
    заказ, кредиты и новый период появятся с веб-хуком subscription.renewed.
    """
    subscription = crud_subscription.get_by_subscription_no(db, subscription_no)
    if subscription is None or subscription_service.is_terminal(subscription):
        return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, subscription_no)
    provider = registry.get(subscription.payment_provider)
    if provider is None:
        return Err(ErrorKind.UNKNOWN_PROVIDER, subscription.payment_provider or "")

    if not await provider.renew(subscription):
        logger.warning(f"Provider '{provider.name}' refused to renew subscription {subscription_no}.")
        return Err(ErrorKind.PROVIDER_ERROR, provider.name)
    logger.info(f"Renewal of subscription {subscription_no} requested from '{provider.name}'.")
    return Ok(subscription)


# --- Оплата заказа ---

def _is_membership_plan(product_id: str | None) -> bool:
    plan = settings.PLANS.get(product_id or "")
    return bool(plan and plan.get("membership"))


def _mark_paid(db: Session, order: Order, event: PaymentEvent, provider: str):
    now = utcnow()
    info = event.payment_info
    order.status = "paid"
    order.payment_result = _payload(provider, event)
    order.paid_at = now
    if info:
        order.transaction_id = info.transaction_id
        order.payment_amount = info.payment_amount
        order.payment_currency = info.payment_currency
        order.payment_email = info.payment_email
        order.paid_at = to_naive_utc(info.paid_at) or now

    subscription = None
    sub_info = event.subscription_info
    if sub_info:
        subscription = subscription_service.create_subscription(
            db,
            user_id=order.user_id,
            plan_id=order.product_id or "",
            period_start=to_naive_utc(sub_info.current_period_start),
            period_end=to_naive_utc(sub_info.current_period_end),
            order_id=order.id,
            payment_provider=order.payment_provider,
            subscription_id=sub_info.subscription_id,
            interval=sub_info.interval,
            interval_count=sub_info.interval_count,
            amount=sub_info.amount,
            currency=sub_info.currency,
            credits_amount=order.credits_amount,
            credits_valid_days=order.credits_valid_days,
            subscription_result=order.payment_result,
        )
    elif order.payment_type == "one_time" and _is_membership_plan(order.product_id):
        days = order.credits_valid_days or ONE_TIME_MEMBERSHIP_DAYS
        subscription = subscription_service.create_subscription(
            db,
            user_id=order.user_id,
            plan_id=order.product_id,
            period_start=order.paid_at,
            period_end=order.paid_at + timedelta(days=days),
            order_id=order.id,
            payment_provider=order.payment_provider,
            subscription_id=(info.transaction_id if info and info.transaction_id else None) or f"one_time_{order.order_no}",
            interval=order.payment_interval or "month",
            amount=order.amount,
            currency=order.currency,
            credits_amount=order.credits_amount,
            credits_valid_days=order.credits_valid_days,
            subscription_result=order.payment_result,
        )
    if subscription:
        order.subscription_no = subscription.subscription_no
        order.subscription_id = subscription.subscription_id

    if order.credits_amount and order.credits_amount > 0:
        crud_credit.create_grant(
            db,
            user_id=order.user_id,
            credits=order.credits_amount,
            scene="subscription" if order.payment_type == "subscription" else "payment",
            expires_at=calculate_credit_expiration_time(
                order.credits_valid_days,
                period_end=to_naive_utc(sub_info.current_period_end) if sub_info else None,
            ),
            order_no=order.order_no,
            subscription_no=order.subscription_no,
            description="Grant credit",
        )

    accrue_commission(db, order, order.referrer_id, "one_time")


def apply_payment_event(db: Session, event: PaymentEvent, provider: str) -> Result[PaymentResult]:
    """
    Применяет событие оплаты заказа.
    SUCCESS - заказ 'paid' + подписка + кредиты + комиссия, все вместе.
    FAILED/CANCELED - заказ 'failed' (оплаченный заказ не откатывается).
    PROCESSING - сохраняется только ответ провайдера.
    """
    status = _ensure_known_status(event)
    try:
        order = crud_order.lock_order_by_no(db, event.order_no)
        if order is None:
            db.rollback()
            logger.warning(f"Payment event for unknown order {event.order_no} ({status}).")
            return Err(ErrorKind.ORDER_NOT_FOUND, event.order_no)

        if order.status == "paid":
            db.rollback()
            logger.warning(f"Order {event.order_no} is already paid. {status} event acknowledged as a no-op.")
            return Ok(PaymentResult(reference=event.order_no, status="paid", applied=False))

        if status == "SUCCESS":
            if order.payment_type == "subscription" and not event.subscription_info:
                raise ValueError(f"Subscription order {order.order_no} paid without subscription info")
            _mark_paid(db, order, event, provider)
        elif status in ("FAILED", "CANCELED"):
            order.status = "failed"
            order.payment_result = _payload(provider, event)
        else:
            order.payment_result = _payload(provider, event)

        db.commit()
        new_status = order.status
    except Exception:
        db.rollback()
        logger.error(f"Failed to apply {status} event to order {event.order_no}", exc_info=True)
        raise

    logger.info(f"Order {event.order_no}: {status} event applied, status is now '{new_status}'.")
    return Ok(PaymentResult(reference=event.order_no, status=new_status))


# --- События подписки ---

def _lock_subscription(db: Session, event: PaymentEvent) -> Subscription | None:
    if not event.subscription_info:
        return None
    return crud_subscription.lock_by_provider_id(db, event.subscription_info.subscription_id)


def apply_renewal(db: Session, event: PaymentEvent, provider: str) -> Result[PaymentResult]:
    """
    Продление: новый оплаченный заказ, начисление 'renewal' по шаблону подписки,
    сдвиг периода. Идемпотентно по transaction_id провайдера.
    """
    status = _ensure_known_status(event)
    sub_info = event.subscription_info
    if sub_info is None:
        raise ValueError(f"Renewal event {event.order_no} has no subscription info")
    if status != "SUCCESS":
        logger.warning(f"Renewal event for {sub_info.subscription_id} has status {status}. Ignored.")
        return Ok(PaymentResult(reference=sub_info.subscription_id, status=status, applied=False))

    info = event.payment_info
    transaction_id = info.transaction_id if info else None
    if not transaction_id:
        # Номер заказа провайдер может повторять от продления к продлению, ключом он служить не может
        logger.warning(f"Renewal event for {sub_info.subscription_id} has no transaction id. Rejected.")
        return Err(ErrorKind.MISSING_TRANSACTION_ID, sub_info.subscription_id)
    try:
        subscription = _lock_subscription(db, event)
        if subscription is None or subscription_service.is_terminal(subscription):
            db.rollback()
            logger.warning(f"Renewal for inactive or unknown subscription {sub_info.subscription_id}. Rejected.")
            return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, sub_info.subscription_id)

        if crud_order.get_order_by_transaction_id(db, transaction_id):
            db.rollback()
            logger.warning(f"Renewal transaction {transaction_id} already applied. No-op.")
            return Ok(PaymentResult(reference=subscription.subscription_no, status=subscription.status, applied=False))

        now = utcnow()
        period_start = to_naive_utc(sub_info.current_period_start)
        period_end = to_naive_utc(sub_info.current_period_end)
        first_order = crud_order.get_order_by_id(db, subscription.order_id) if subscription.order_id else None

        order = Order(
            order_no=new_order_no(),
            user_id=subscription.user_id,
            status="paid",
            amount=sub_info.amount if sub_info.amount is not None else (subscription.amount or 0),
            currency=sub_info.currency or subscription.currency or "USD",
            product_id=subscription.plan_id,
            product_name=subscription.plan_id,
            payment_type="subscription",
            payment_interval=sub_info.interval or subscription.interval,
            payment_provider=subscription.payment_provider or provider,
            transaction_id=transaction_id,
            payment_amount=info.payment_amount if info else None,
            payment_currency=info.payment_currency if info else None,
            payment_email=info.payment_email if info else None,
            payment_result=_payload(provider, event),
            paid_at=(to_naive_utc(info.paid_at) if info else None) or now,
            subscription_no=subscription.subscription_no,
            subscription_id=subscription.subscription_id,
            credits_amount=subscription.credits_amount,
            credits_valid_days=subscription.credits_valid_days,
            referrer_id=first_order.referrer_id if first_order else None,
            description=f"Subscription Renewal: {subscription.plan_id}",
        )
        db.add(order)
        db.flush()

        if subscription.credits_amount and subscription.credits_amount > 0:
            crud_credit.create_grant(
                db,
                user_id=subscription.user_id,
                credits=subscription.credits_amount,
                scene="renewal",
                expires_at=calculate_credit_expiration_time(subscription.credits_valid_days, period_end=period_end),
                order_no=order.order_no,
                subscription_no=subscription.subscription_no,
                description="Grant credit for renewal",
            )

        subscription_service.advance_period(subscription, period_start, period_end)
        subscription.subscription_result = order.payment_result
        accrue_commission(db, order, order.referrer_id, "renewal")

        db.commit()
        subscription_no = subscription.subscription_no
    except Exception:
        db.rollback()
        logger.error(f"Failed to apply renewal for {sub_info.subscription_id}", exc_info=True)
        raise

    logger.info(f"Subscription {subscription_no} renewed until {period_end} (transaction {transaction_id}).")
    return Ok(PaymentResult(reference=subscription_no, status="active"))


def apply_update(db: Session, event: PaymentEvent, provider: str) -> Result[PaymentResult]:
    """Обновление полей подписки (период, сумма, статус). Кредиты не начисляются."""
    sub_info = event.subscription_info
    if sub_info is None:
        raise ValueError(f"Update event {event.order_no} has no subscription info")
    try:
        subscription = _lock_subscription(db, event)
        if subscription is None or subscription_service.is_terminal(subscription):
            db.rollback()
            return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, sub_info.subscription_id)

        now = utcnow()
        target = (sub_info.status or "active").lower()
        period_start = to_naive_utc(sub_info.current_period_start)
        period_end = to_naive_utc(sub_info.current_period_end)
        if target == subscription_service.CANCELED:
            subscription_service.cancel(subscription, now=now, period_end=period_end)
        elif target == subscription_service.EXPIRED:
            subscription_service.expire(subscription, now=now)
        else:
            if target != subscription_service.ACTIVE:
                logger.warning(f"Subscription {subscription.subscription_no}: provider status '{target}' kept as active.")
            subscription_service.advance_period(subscription, period_start, period_end)

        subscription.amount = sub_info.amount if sub_info.amount is not None else subscription.amount
        subscription.currency = sub_info.currency or subscription.currency
        subscription.interval = sub_info.interval or subscription.interval
        subscription.interval_count = sub_info.interval_count
        subscription.subscription_result = _payload(provider, event)
        db.commit()
        result = PaymentResult(reference=subscription.subscription_no, status=subscription.status)
    except Exception:
        db.rollback()
        logger.error(f"Failed to apply update for {sub_info.subscription_id}", exc_info=True)
        raise

    logger.info(f"Subscription {result.reference} updated, status '{result.status}'.")
    return Ok(result)


def apply_cancel(db: Session, event: PaymentEvent, provider: str) -> Result[PaymentResult]:
    sub_info = event.subscription_info
    if sub_info is None:
        raise ValueError(f"Cancel event {event.order_no} has no subscription info")
    try:
        subscription = _lock_subscription(db, event)
        if subscription is None:
            db.rollback()
            return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, sub_info.subscription_id)
        if subscription.status == subscription_service.CANCELED:
            db.rollback()
            logger.warning(f"Subscription {subscription.subscription_no} already canceled. No-op.")
            return Ok(PaymentResult(reference=subscription.subscription_no, status="canceled", applied=False))
        if subscription_service.is_terminal(subscription):
            db.rollback()
            return Err(ErrorKind.SUBSCRIPTION_NOT_ACTIVE, sub_info.subscription_id)

        subscription_service.cancel(subscription, period_end=to_naive_utc(sub_info.current_period_end))
        subscription.subscription_result = _payload(provider, event)
        db.commit()
        subscription_no = subscription.subscription_no
    except Exception:
        db.rollback()
        logger.error(f"Failed to cancel subscription {sub_info.subscription_id}", exc_info=True)
        raise

    logger.info(f"Subscription {subscription_no} canceled by provider '{provider}'.")
    return Ok(PaymentResult(reference=subscription_no, status="canceled"))


EVENT_HANDLERS = {
    "checkout.completed": apply_payment_event,
    "subscription.renewed": apply_renewal,
    "subscription.updated": apply_update,
    "subscription.canceled": apply_cancel,
}


def process_webhook_event(db: Session, webhook_event: WebhookEvent, provider: str) -> Result[PaymentResult]:
    handler = EVENT_HANDLERS[webhook_event.event_type]
    return handler(db, webhook_event.event, provider)
