import uuid
from decimal import Decimal

from pydantic import BaseModel, Field

from api.models import OrderStatus, PaymentStatus


class ShippingAddress(BaseModel):
    flat: str
    building: str | None = None
    street: str
    city: str
    state: str | None = None
    pincode: str


class OrderSubmit(BaseModel):
    customer_name: str = Field(..., min_length=1)
    customer_company: str | None = None
    customer_phone: str
    customer_email: str
    customer_whatsapp: str | None = None

    card_design_id: uuid.UUID | None = None
    line1_text: str | None = None
    line2_text: str | None = None

    sale_price: Decimal = Field(..., gt=0)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    # No agent means a direct sale from the website
    agent_id: uuid.UUID | None = None

    shipping_address: ShippingAddress | None = None
    special_instructions: str | None = None


class OrderTransition(BaseModel):
    status: OrderStatus
    rejection_reason: str | None = None
    tracking_number: str | None = None
    admin_notes: str | None = None


class OrderDetailsUpdate(BaseModel):
    payment_status: PaymentStatus | None = None
    tracking_number: str | None = None
    admin_notes: str | None = None
