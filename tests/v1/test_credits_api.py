# tests/v1/test_credits_api.py

import pytest
from httpx import AsyncClient

from app.crud import credit as crud_credit
from app.models.redemption import RedemptionCode
from app.services import redemption as redemption_service

pytestmark = pytest.mark.asyncio


def _add_code(db, code, credits=100, max_uses=1):
    db.add(RedemptionCode(
        code_hash=redemption_service.hash_code(code),
        code_preview=redemption_service.mask_code(code),
        type="credits",
        credits=credits,
        max_uses=max_uses,
        credit_validity_days=30,
    ))
    db.commit()


async def test_balance_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/credits/balance")
    assert response.status_code in (401, 403)


async def test_invalid_token_is_rejected(client: AsyncClient):
    response = await client.get("/api/v1/credits/balance", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_redeem_then_balance_and_history(client: AsyncClient, auth_headers: dict, db_session):
    _add_code(db_session, "ABCD-EFGH-1234-5678", credits=100)

    response = await client.post("/api/v1/credits/redeem", json={"code": " abcd-efgh-1234-5678 "}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["credits"] == 100
    assert data["type"] == "credits"
    assert "100" in data["message"]

    balance = await client.get("/api/v1/credits/balance", headers=auth_headers)
    assert balance.json() == {"user_id": "user-1", "balance": 100}

    history = await client.get("/api/v1/credits/history", params={"page": 1, "size": 10}, headers=auth_headers)
    body = history.json()
    assert body["balance"] == 100
    assert body["total_items"] == 1
    assert body["items"][0]["scene"] == "redemption"


async def test_redeem_errors_are_typed(client: AsyncClient, auth_headers: dict, db_session, headers_for):
    _add_code(db_session, "ABCD-EFGH-1234-5678")
    await client.post("/api/v1/credits/redeem", json={"code": "ABCD-EFGH-1234-5678"}, headers=auth_headers)

    again = await client.post("/api/v1/credits/redeem", json={"code": "ABCD-EFGH-1234-5678"}, headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "already_redeemed"

    other_headers = headers_for("user-2")
    other = await client.post("/api/v1/credits/redeem", json={"code": "ABCD-EFGH-1234-5678"}, headers=other_headers)
    assert other.json()["detail"]["error"] == "code_used_or_expired"

    missing = await client.post("/api/v1/credits/redeem", json={"code": "ZZZZ-ZZZZ-ZZZZ-ZZZZ"}, headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"]["error"] == "invalid_code"


async def test_redeem_is_rate_limited_per_user(client: AsyncClient, auth_headers: dict, headers_for):
    for _ in range(10):
        response = await client.post("/api/v1/credits/redeem", json={"code": "ZZZZ-ZZZZ-ZZZZ-ZZZZ"}, headers=auth_headers)
        assert response.status_code == 404

    blocked = await client.post("/api/v1/credits/redeem", json={"code": "ZZZZ-ZZZZ-ZZZZ-ZZZZ"}, headers=auth_headers)
    assert blocked.status_code == 429

    # Лимит считается по пользователю, а не по IP
    other_headers = headers_for("user-2")
    other = await client.post("/api/v1/credits/redeem", json={"code": "ZZZZ-ZZZZ-ZZZZ-ZZZZ"}, headers=other_headers)
    assert other.status_code == 404


async def test_current_subscription_is_null_without_membership(client: AsyncClient, auth_headers: dict, db_session):
    response = await client.get("/api/v1/subscriptions/current", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() is None

    crud_credit.create_grant(db_session, user_id="user-1", credits=5, scene="gift")
    db_session.commit()
    balance = await client.get("/api/v1/credits/balance", headers=auth_headers)
    assert balance.json()["balance"] == 5
