from datetime import datetime
from pydantic import BaseModel, Field


class CreditLot(BaseModel):
    id: int
    package_id: int | None = None
    payment_id: int | None = None
    purchase_type: str
    credits_remaining: int
    credits_total: int
    purchased_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool

    class Config:
        from_attributes = True


class CreditSummary(BaseModel):
    user_id: int
    total_credits: int
    lots: list[CreditLot]


class CreditGrant(BaseModel):
    user_id: int
    package_id: int | None = None
    credits: int | None = Field(default=None, gt=0)
    expiration_days: int | None = Field(default=None, gt=0)
    note: str | None = None
