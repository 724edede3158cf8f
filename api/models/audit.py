import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import UUID, DateTime, Enum, ForeignKey, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .order import OrderStatus
from utils.clock import utcnow


class OrderStatusEvent(Base):
    """Append-only record of every status change an order went through."""

    __tablename__ = "order_status_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    from_status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), nullable=False)
    to_status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), nullable=False)
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="status_events")
