# tests/v1/test_affiliate_api.py

import pytest
from httpx import AsyncClient

from app.models.commission import Commission

pytestmark = pytest.mark.asyncio


@pytest.fixture
def accrued_commission(db_session):
    db_session.add(Commission(user_id="user-1", order_id="o1", order_no="ORD1", amount=1000, status="paid"))
    db_session.commit()


async def test_withdrawal_flow(client: AsyncClient, auth_headers: dict, accrued_commission):
    created = await client.post(
        "/api/v1/affiliate/withdrawals",
        json={"amount": 600, "method": "paypal", "payout_details": {"email": "aff@example.com"}},
        headers=auth_headers,
    )
    assert created.status_code == 201
    assert created.json()["status"] == "pending"

    stats = await client.get("/api/v1/affiliate/stats", headers=auth_headers)
    assert stats.json()["available"] == 400
    assert stats.json()["reserved"] == 600

    too_much = await client.post(
        "/api/v1/affiliate/withdrawals",
        json={"amount": 500, "method": "paypal", "payout_details": {}},
        headers=auth_headers,
    )
    assert too_much.status_code == 409
    assert too_much.json()["detail"]["error"] == "insufficient_commission_balance"

    listed = await client.get("/api/v1/affiliate/withdrawals", headers=auth_headers)
    assert listed.json()["total_items"] == 1

    commissions = await client.get("/api/v1/affiliate/commissions", headers=auth_headers)
    assert commissions.json()["items"][0]["order_no"] == "ORD1"


async def test_withdrawal_method_is_validated(client: AsyncClient, auth_headers: dict, accrued_commission):
    response = await client.post(
        "/api/v1/affiliate/withdrawals",
        json={"amount": 100, "method": "cash", "payout_details": {}},
        headers=auth_headers,
    )
    assert response.status_code == 422
