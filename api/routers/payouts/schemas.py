import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from api.models import PaymentMethod, PayoutStatus


class PayoutCreate(BaseModel):
    agent_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    admin_notes: str | None = None


class PayoutRead(BaseModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    amount: Decimal
    payment_method: PaymentMethod
    admin_notes: str | None = None
    status: PayoutStatus
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceRead(BaseModel):
    agent_id: uuid.UUID
    available_balance: Decimal


class LiabilityRead(BaseModel):
    agent_id: uuid.UUID
    full_name: str
    available_balance: Decimal
    last_payout_date: datetime | None = None

    class Config:
        from_attributes = True
