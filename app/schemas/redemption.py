# app/schemas/redemption.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List

from app.schemas.common import PaginatedResponse

class IssueCreditCodesRequest(BaseModel):
    credits: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1, le=1000)
    max_uses: int = Field(1, ge=1)
    # Срок жизни начисленных кредитов. None - берется CREDIT_VALIDITY_DAYS, 0 - бессрочно
    validity_days: int | None = Field(None, ge=0)
    expires_at: datetime | None = None

class IssueMembershipCodesRequest(BaseModel):
    plan_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=1000)
    membership_days: int = Field(..., gt=0)
    expires_at: datetime | None = None

class IssuedCodes(BaseModel):
    """Открытые коды возвращаются ровно один раз - при выпуске."""
    type: str
    credits: int
    plan_id: str | None = None
    codes: List[str]

class RedemptionCodeListItem(BaseModel):
    id: str
    code_preview: str
    type: str
    credits: int
    plan_id: str | None = None
    membership_days: int | None = None
    max_uses: int
    used_count: int
    status: str
    created_by: str | None = None
    created_at: datetime
    expires_at: datetime | None = None

    class Config:
        from_attributes = True

class PaginatedRedemptionCodes(PaginatedResponse[RedemptionCodeListItem]):
    pass

class RedemptionOutcome(BaseModel):
    credits: int
    type: str
    plan_id: str | None = None
