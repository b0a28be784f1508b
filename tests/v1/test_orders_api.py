# tests/v1/test_orders_api.py

import pytest
from httpx import AsyncClient

from app.models.order import Order
from app.services import subscription as subscription_service

pytestmark = pytest.mark.asyncio


async def test_checkout_creates_pending_order_at_plan_price(client: AsyncClient, auth_headers: dict, db_session):
    response = await client.post(
        "/api/v1/orders/checkout",
        json={"product_id": "plus-monthly", "referrer_id": "user-1"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    session = response.json()
    assert session["provider"] == "manual"
    order = db_session.query(Order).filter_by(order_no=session["order_no"]).one()
    assert order.status == "pending"
    assert order.amount == 999
    assert order.credits_amount == 600
    # Самореферал отбрасывается
    assert order.referrer_id is None

    fetched = await client.get(f"/api/v1/orders/{session['order_no']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "pending"


async def test_checkout_with_unknown_provider_or_plan(client: AsyncClient, auth_headers: dict, db_session):
    unknown_provider = await client.post(
        "/api/v1/orders/checkout", json={"product_id": "plus-monthly", "provider": "stripe"}, headers=auth_headers
    )
    unknown_plan = await client.post("/api/v1/orders/checkout", json={"product_id": "gold"}, headers=auth_headers)

    assert unknown_provider.status_code == 404
    assert unknown_provider.json()["detail"]["error"] == "unknown_provider"
    assert unknown_plan.status_code == 422
    assert db_session.query(Order).count() == 0


async def test_foreign_order_is_not_visible(client: AsyncClient, auth_headers: dict, headers_for):
    created = await client.post("/api/v1/orders/checkout", json={"product_id": "pro-monthly"}, headers=auth_headers)
    order_no = created.json()["order_no"]

    response = await client.get(f"/api/v1/orders/{order_no}", headers=headers_for("user-2"))

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "order_not_found"


async def test_cancel_current_subscription_keeps_paid_period(client: AsyncClient, auth_headers: dict, db_session):
    subscription_service.assign_membership(db_session, "user-1", "pro-monthly", admin_id="root-admin")

    response = await client.post("/api/v1/subscriptions/current/cancel", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "canceled"
    assert body["canceled_at"] is not None

    again = await client.post("/api/v1/subscriptions/current/cancel", headers=auth_headers)
    assert again.status_code == 409
