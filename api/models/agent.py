import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import UUID, CheckConstraint, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from utils.clock import utcnow


class AgentStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Agent(Base):
    __tablename__ = "agents"
    __table_args__ = (CheckConstraint("available_balance >= 0", name="ck_agents_available_balance_non_negative"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    referral_code: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    status: Mapped[AgentStatus] = mapped_column(Enum(AgentStatus), default=AgentStatus.ACTIVE, nullable=False)

    base_commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("100.00"), nullable=False)
    total_sales: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Lifetime, only ever grows
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    # Payable now, reduced only by payouts
    available_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    parent_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("agents.id"), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    # Agent who recruited me
    parent: Mapped[Optional["Agent"]] = relationship(back_populates="sub_agents", remote_side=[id])
    # Agents I recruited
    sub_agents: Mapped[List["Agent"]] = relationship(back_populates="parent")

    payouts: Mapped[List["Payout"]] = relationship(back_populates="agent")
