from datetime import datetime
from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    user_id: int
    package_id: int | None = None
    amount: float = Field(ge=0)
    currency: str = "USD"
    method: str = "external_checkout"
    external_reference: str | None = None


class Payment(BaseModel):
    id: int
    user_id: int
    package_id: int | None = None
    amount: float
    currency: str
    method: str
    external_reference: str | None = None
    status: str
    created_at: datetime | None = None
    completed_at: datetime | None = None

    class Config:
        from_attributes = True
