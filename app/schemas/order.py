# app/schemas/order.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal

class Order(BaseModel):
    order_no: str
    status: str
    amount: int
    currency: str
    product_id: str | None = None
    payment_type: str
    payment_provider: str
    credits_amount: int | None = None
    subscription_no: str | None = None
    paid_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- Оформление заказа ---
class CheckoutRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    provider: str = "manual"
    payment_type: Literal["one_time", "subscription"] = "one_time"
    # Партнер из реферальной ссылки. Собственный ID игнорируется
    referrer_id: str | None = None
