import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, UUID, Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from utils.clock import utcnow


class OrderStatus(enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PRINTING = "printing"
    PRINTED = "printed"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    ADVANCE_PAID = "advance_paid"
    PAID = "paid"
    COD = "cod"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)

    agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("agents.id"), nullable=True, index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("customers.id"), nullable=True, index=True)
    card_design_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("card_designs.id"), nullable=False)

    customer_name: Mapped[str] = mapped_column(String, nullable=False)
    customer_company: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    customer_phone: Mapped[str] = mapped_column(String, nullable=False)
    customer_email: Mapped[str] = mapped_column(String, nullable=False)
    customer_whatsapp: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    line1_text: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    line2_text: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Frozen at submission, never recomputed
    sale_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    msp_at_order: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    override_commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    override_agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("agents.id"), nullable=True)
    is_direct_sale: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_below_msp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.PENDING_APPROVAL, nullable=False, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    # Bumped on every write, used for optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    portfolio_slug: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    agent: Mapped[Optional["Agent"]] = relationship(foreign_keys=[agent_id])
    override_agent: Mapped[Optional["Agent"]] = relationship(foreign_keys=[override_agent_id])
    customer: Mapped[Optional["Customer"]] = relationship()
    card_design: Mapped["CardDesign"] = relationship()
    status_events: Mapped[List["OrderStatusEvent"]] = relationship(
        back_populates="order", order_by="OrderStatusEvent.id"
    )
