# app/schemas/subscription.py
from pydantic import BaseModel, Field
from datetime import datetime

class Subscription(BaseModel):
    subscription_no: str
    status: str
    plan_id: str
    payment_provider: str | None = None
    interval: str | None = None
    interval_count: int
    current_period_start: datetime
    current_period_end: datetime
    canceled_at: datetime | None = None
    credits_amount: int | None = None

    class Config:
        from_attributes = True

# --- Ручное назначение тарифа администратором ---
class AssignMembershipRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    # 'free' снимает членство: все активные подписки гасятся
    plan_id: str = Field(..., min_length=1)

class MembershipAssignment(BaseModel):
    user_id: str
    plan_id: str
    order_no: str | None = None
    subscription: Subscription | None = None
    expired_subscriptions: int = 0
    credits_granted: int = 0
