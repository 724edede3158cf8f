import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from api.models import AgentStatus


class AgentCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    base_commission: Decimal = Field(Decimal("100.00"), ge=0)
    # Recruiter, either by id or by referral code
    parent_agent_id: uuid.UUID | None = None
    parent_referral_code: str | None = None


class AgentStatusUpdate(BaseModel):
    status: AgentStatus


class AgentParentUpdate(BaseModel):
    # None detaches the agent from its recruiter
    parent_agent_id: uuid.UUID | None = None


class AgentMspSet(BaseModel):
    card_design_id: uuid.UUID
    msp_amount: Decimal = Field(..., gt=0)


class AgentApplicationCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    experience: str | None = None
    # Code of the agent who sent the applicant our way
    referral_code: str | None = None


class AgentApplicationReject(BaseModel):
    reason: str | None = None
