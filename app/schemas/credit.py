# app/schemas/credit.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List

from app.schemas.common import PaginatedResponse

class CreditTransaction(BaseModel):
    transaction_no: str
    type: str
    scene: str
    credits: int
    remaining_credits: int
    order_no: str | None = None
    subscription_no: str | None = None
    description: str | None = None
    created_at: datetime
    expires_at: datetime | None = None

    class Config:
        from_attributes = True

class CreditHistory(PaginatedResponse[CreditTransaction]):
    balance: int

class CreditBalance(BaseModel):
    user_id: str
    balance: int

class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    balance: int

# --- Схемы для действий ---
class RedeemRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)

class RedeemResponse(BaseModel):
    credits: int
    type: str
    plan_id: str | None = None
    message: str

class AdminAdjustCreditsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    credits: int  # > 0 - подарок, < 0 - списание
    description: str | None = None
    valid_days: int | None = Field(None, description="Срок жизни подарка в днях. Пусто - бессрочно.")

class AdminRefundCreditsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    credits: int = Field(..., gt=0)
    description: str = "Manual refund by admin"
