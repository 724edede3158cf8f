import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from utils.clock import utcnow


class AgentApplicationStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AgentApplication(Base):
    """Someone asking to become an agent; an admin turns it into an Agent or turns it down."""

    __tablename__ = "agent_applications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    # Stored lowercased
    email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Last 10 digits only
    phone: Mapped[str] = mapped_column(String, nullable=False, index=True)
    city: Mapped[str] = mapped_column(String, nullable=False)
    experience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    referral_code_used: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # Recruiter resolved from the referral code, if it matched anyone
    parent_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("agents.id"), nullable=True)
    # Set once approved
    agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("agents.id"), nullable=True)

    status: Mapped[AgentApplicationStatus] = mapped_column(
        Enum(AgentApplicationStatus), default=AgentApplicationStatus.PENDING, nullable=False, index=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
