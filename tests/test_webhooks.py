# tests/test_webhooks.py

import json
from datetime import timedelta

import pytest
from httpx import AsyncClient

from app.clients.payment_providers import (
    ManualProvider, ProviderRegistry, WebhookVerificationError, build_registry, sign_payload
)
from app.core.config import settings
from app.models.credit import CreditTransaction
from app.models.order import Order
from app.services import payment as payment_service
from app.utils.clock import utcnow

WEBHOOK_URL = "/internal/webhooks/payments/manual"


def _body(order_no, status="SUCCESS", event_type="checkout.completed", **event_fields):
    event = {"order_no": order_no, "status": status, "payment_info": {"transaction_id": "txn_42"}}
    event.update(event_fields)
    return json.dumps({"event_type": event_type, "event": event}).encode()


def _signed_headers(body: bytes, secret: str | None = None) -> dict:
    return {
        "x-payment-signature": sign_payload(secret or settings.PAYMENT_WEBHOOK_SECRET, body),
        "Content-Type": "application/json",
    }


def _pending_order(db, product_id="plus-monthly"):
    return payment_service.create_order(
        db, user_id="user-1", product_id=product_id, amount=999, payment_provider="manual"
    ).value


# --- Адаптер ---

def test_manual_provider_verifies_signature():
    provider = ManualProvider("secret")
    body = _body("ORD1")

    event = provider.verify_webhook(body, {"x-payment-signature": sign_payload("secret", body)})

    assert event.event_type == "checkout.completed"
    assert event.event.order_no == "ORD1"
    # Без явного raw сохраняется весь конверт события
    assert event.event.raw["event_type"] == "checkout.completed"


@pytest.mark.parametrize("headers", [{}, {"x-payment-signature": "forged"}])
def test_manual_provider_rejects_bad_signature(headers):
    with pytest.raises(WebhookVerificationError):
        ManualProvider("secret").verify_webhook(_body("ORD1"), headers)


def test_manual_provider_without_secret_rejects_everything():
    body = _body("ORD1")
    with pytest.raises(WebhookVerificationError):
        ManualProvider("").verify_webhook(body, {"x-payment-signature": sign_payload("", body)})


def test_manual_provider_rejects_malformed_body():
    body = b'{"event_type": "order.shipped"}'
    with pytest.raises(WebhookVerificationError):
        ManualProvider("secret").verify_webhook(body, {"x-payment-signature": sign_payload("secret", body)})


def test_registry_is_built_from_settings():
    registry = build_registry(settings)

    assert registry.names() == ["manual"]
    assert isinstance(registry.get("MANUAL"), ManualProvider)
    assert ProviderRegistry().get("manual") is None


# --- HTTP ---

@pytest.mark.asyncio
async def test_signed_webhook_pays_order_once(client: AsyncClient, db_session):
    order = _pending_order(db_session)
    body = _body(order.order_no)

    first = await client.post(WEBHOOK_URL, content=body, headers=_signed_headers(body))
    retry = await client.post(WEBHOOK_URL, content=body, headers=_signed_headers(body))

    assert first.status_code == 200
    assert first.json() == {"status": "ok", "result": {"reference": order.order_no, "status": "paid", "applied": True}}
    assert retry.status_code == 200
    assert retry.json()["result"]["applied"] is False
    db_session.expire_all()
    assert db_session.query(Order).filter_by(order_no=order.order_no).one().status == "paid"
    assert db_session.query(CreditTransaction).filter_by(order_no=order.order_no).count() == 1


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_is_rejected(client: AsyncClient, db_session):
    order = _pending_order(db_session)
    body = _body(order.order_no)

    response = await client.post(WEBHOOK_URL, content=body, headers=_signed_headers(body, secret="wrong"))

    assert response.status_code == 401
    db_session.expire_all()
    assert db_session.query(Order).filter_by(order_no=order.order_no).one().status == "pending"


@pytest.mark.asyncio
async def test_webhook_for_unknown_provider(client: AsyncClient):
    body = _body("ORD1")
    response = await client.post("/internal/webhooks/payments/stripe", content=body, headers=_signed_headers(body))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_webhook_with_unrecognized_status_fails_loudly(client: AsyncClient, db_session):
    order = _pending_order(db_session)
    body = _body(order.order_no, status="CHARGEBACK")

    response = await client.post(WEBHOOK_URL, content=body, headers=_signed_headers(body))

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "unrecognized_event_status"


@pytest.mark.asyncio
async def test_webhook_renewal_for_unknown_subscription(client: AsyncClient):
    now = utcnow()
    body = _body(
        "renewal-1",
        event_type="subscription.renewed",
        subscription_info={
            "subscription_id": "sub_missing",
            "current_period_start": now.isoformat(),
            "current_period_end": (now + timedelta(days=30)).isoformat(),
        },
    )

    response = await client.post(WEBHOOK_URL, content=body, headers=_signed_headers(body))

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "subscription_not_active"
