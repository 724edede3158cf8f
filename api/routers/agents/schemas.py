import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from api.models import AgentApplicationStatus, AgentStatus


class AgentRead(BaseModel):
    id: uuid.UUID
    full_name: str
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    referral_code: str
    status: AgentStatus
    base_commission: Decimal
    total_sales: int
    total_earnings: Decimal
    available_balance: Decimal
    parent_agent_id: uuid.UUID | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class SubAgentRead(BaseModel):
    agent_id: uuid.UUID
    full_name: str
    referral_code: str
    status: AgentStatus
    total_sales: int
    override_earned: Decimal

    class Config:
        from_attributes = True


class AgentMspRead(BaseModel):
    agent_id: uuid.UUID
    card_design_id: uuid.UUID
    msp_amount: Decimal

    class Config:
        from_attributes = True


class AgentApplicationRead(BaseModel):
    id: uuid.UUID
    full_name: str
    email: str
    phone: str
    city: str
    experience: str | None = None
    referral_code_used: str | None = None
    parent_agent_id: uuid.UUID | None = None
    agent_id: uuid.UUID | None = None
    status: AgentApplicationStatus
    rejection_reason: str | None = None
    created_at: datetime
    reviewed_at: datetime | None = None

    class Config:
        from_attributes = True


class AgentApplicationSubmitted(BaseModel):
    application_id: uuid.UUID
    message: str
