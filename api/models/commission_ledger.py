import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from utils.clock import utcnow


class CommissionKind(enum.Enum):
    BASE = "base"
    OVERRIDE = "override"


class CommissionEntry(Base):
    """Immutable credit posted to an agent for one order."""

    __tablename__ = "commission_ledger"
    __table_args__ = (UniqueConstraint("order_id", "agent_id", "kind", name="uq_commission_ledger_order_agent_kind"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("agents.id"), nullable=False, index=True)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    kind: Mapped[CommissionKind] = mapped_column(Enum(CommissionKind), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    agent: Mapped["Agent"] = relationship()
    order: Mapped["Order"] = relationship()
