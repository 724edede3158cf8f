import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel

from api.models import OrderStatus, PaymentStatus


class SubmittedOrderRead(BaseModel):
    order_id: uuid.UUID
    order_number: int
    is_below_msp: bool
    commission_amount: Decimal
    override_commission: Decimal

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: uuid.UUID
    order_number: int
    agent_id: uuid.UUID | None = None
    customer_id: uuid.UUID | None = None
    card_design_id: uuid.UUID

    customer_name: str
    customer_company: str | None = None
    customer_phone: str
    customer_email: str
    customer_whatsapp: str | None = None
    line1_text: str | None = None
    line2_text: str | None = None
    shipping_address: Dict[str, Any] | None = None
    special_instructions: str | None = None

    sale_price: Decimal
    msp_at_order: Decimal
    commission_amount: Decimal
    override_commission: Decimal
    override_agent_id: uuid.UUID | None = None
    is_direct_sale: bool
    is_below_msp: bool

    status: OrderStatus
    payment_status: PaymentStatus
    version: int
    portfolio_slug: str | None = None
    tracking_number: str | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = None

    created_at: datetime
    updated_at: datetime
    approved_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    paid_at: datetime | None = None

    class Config:
        from_attributes = True


class ApprovalRead(BaseModel):
    order_id: uuid.UUID
    order_number: int
    customer_id: uuid.UUID
    slug: str
    is_new_customer: bool

    class Config:
        from_attributes = True


class RejectPayload(BaseModel):
    reason: str


class TimelineStepRead(BaseModel):
    status: OrderStatus
    label: str
    completed: bool
    timestamp: datetime | None = None

    class Config:
        from_attributes = True


class OrderTrackingRead(BaseModel):
    order_number: int
    status: OrderStatus
    status_label: str
    payment_status: str
    tracking_number: str | None = None
    timeline: list[TimelineStepRead]

    class Config:
        from_attributes = True
