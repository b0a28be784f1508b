# app/schemas/commission.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Literal

from app.schemas.common import PaginatedResponse

class Commission(BaseModel):
    id: str
    order_no: str
    amount: int
    currency: str
    status: str
    type: str
    rate: str | None = None
    description: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True

class PaginatedCommissions(PaginatedResponse[Commission]):
    pass

class CommissionStats(BaseModel):
    accrued: int    # начислено и доступно к выводу
    withdrawn: int  # уже выплачено
    reserved: int   # заявки в статусах pending + approved
    available: int  # accrued - withdrawn - reserved
    currency: str

class WithdrawalCreate(BaseModel):
    amount: int = Field(..., gt=0)
    method: Literal["paypal", "bank", "alipay", "wechat", "crypto"]
    payout_details: Dict[str, Any] = Field(..., description="Реквизиты, сохраняются снимком на момент заявки.")

class Withdrawal(BaseModel):
    id: str
    user_id: str
    amount: int
    currency: str
    status: str
    method: str
    payout_details: str
    note: str | None = None
    reviewed_by: str | None = None
    created_at: datetime
    processed_at: datetime | None = None
    paid_at: datetime | None = None

    class Config:
        from_attributes = True

class PaginatedWithdrawals(PaginatedResponse[Withdrawal]):
    pass

class WithdrawalReview(BaseModel):
    note: str | None = None
