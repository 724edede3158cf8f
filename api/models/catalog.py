import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from utils.clock import utcnow


class CardDesignStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CardDesign(Base):
    __tablename__ = "card_designs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    base_msp: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("600.00"), nullable=False)
    status: Mapped[CardDesignStatus] = mapped_column(Enum(CardDesignStatus), default=CardDesignStatus.ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AgentMsp(Base):
    """Agent specific minimum selling price for a card design."""

    __tablename__ = "agent_msps"
    __table_args__ = (UniqueConstraint("agent_id", "card_design_id", name="uq_agent_msps_agent_design"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("agents.id"), nullable=False)
    card_design_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("card_designs.id"), nullable=False)
    msp_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    agent = relationship("Agent")
    card_design = relationship("CardDesign")
