import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Agent, AgentMsp, AgentStatus, CardDesign, CardDesignStatus, Order, OrderStatus
from services.approval.service import ApprovalResult, ApprovalWorkflow
from services.commission.calculator import CommissionCalculator
from services.commission.hierarchy import AgentHierarchyResolver
from services.errors import Conflict, NotFound, ValidationError
from services.fulfillment.state_machine import OrderStateMachine, retry_on_conflict
from services.ledger.service import PayoutLedger
from services.notifier import Notifier
from services.orders.schemas import OrderDetailsUpdate, OrderSubmit
from utils.clock import utcnow
from utils.contact import EMAIL_RE, PHONE_RE, PINCODE_RE, last_ten_digits
from utils.money import to_money

STATUS_LABELS = {
    OrderStatus.PENDING_APPROVAL: "Order Received",
    OrderStatus.APPROVED: "Order Confirmed",
    OrderStatus.PRINTING: "Printing",
    OrderStatus.PRINTED: "Printed",
    OrderStatus.READY_TO_SHIP: "Ready to Ship",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.PAID: "Completed",
    OrderStatus.REJECTED: "Rejected",
    OrderStatus.CANCELLED: "Cancelled",
}

PIPELINE = [
    OrderStatus.PENDING_APPROVAL,
    OrderStatus.APPROVED,
    OrderStatus.PRINTING,
    OrderStatus.PRINTED,
    OrderStatus.READY_TO_SHIP,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.PAID,
]


@dataclass(frozen=True)
class SubmittedOrder:
    order_id: uuid.UUID
    order_number: int
    is_below_msp: bool
    commission_amount: Decimal
    override_commission: Decimal


@dataclass(frozen=True)
class TimelineStep:
    status: OrderStatus
    label: str
    completed: bool
    timestamp: datetime | None = None


@dataclass(frozen=True)
class OrderTracking:
    order_number: int
    status: OrderStatus
    status_label: str
    payment_status: str
    tracking_number: str | None
    timeline: list[TimelineStep] = field(default_factory=list)


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        state_machine: OrderStateMachine,
        calculator: CommissionCalculator,
        hierarchy: AgentHierarchyResolver,
        ledger: PayoutLedger,
        approval: ApprovalWorkflow,
        notifier: Notifier,
        credit_status: OrderStatus = OrderStatus.DELIVERED,
        default_base_msp: Decimal = Decimal("599"),
    ):
        if credit_status not in (OrderStatus.DELIVERED, OrderStatus.PAID):
            raise ValueError("Commission can only be credited on delivered or paid")
        self.session = session
        self.state_machine = state_machine
        self.calculator = calculator
        self.hierarchy = hierarchy
        self.ledger = ledger
        self.approval = approval
        self.notifier = notifier
        self.credit_status = credit_status
        self.default_base_msp = to_money(default_base_msp)

    # ========================================================================
    # Submission
    # ========================================================================

    async def submit_order(self, dto: OrderSubmit) -> SubmittedOrder:
        """
        Validate the payload, freeze MSP and commission onto a new order.

        Flow:
        1. Normalise and validate customer contact details
        2. For agent orders: agent must be active, parent resolved for override
        3. Resolve the card design (first active one, or a default saved with the order)
        4. MSP in effect: agent specific MSP, else the design's base MSP
        5. Insert at ``pending_approval`` with the next order number
        """
        contact = self._validated_contact(dto)

        async def create() -> Order:
            # everything is re-read here so a retry after rollback starts clean
            agent = parent = None
            if dto.agent_id:
                agent = await self.session.get(Agent, dto.agent_id)
                if not agent:
                    raise NotFound("Agent not found")
                if agent.status != AgentStatus.ACTIVE:
                    raise ValidationError("Only active agents can submit orders")
                parent = await self.hierarchy.resolve_parent(agent.id)

            design = await self._resolve_design(dto.card_design_id)
            msp = await self._resolve_msp(agent, design)
            breakdown = self.calculator.calculate(dto.sale_price, msp, agent, parent)

            order = Order(
                order_number=await self._next_order_number(),
                agent_id=agent.id if agent else None,
                card_design_id=design.id,
                line1_text=self._line1(dto.line1_text, direct=agent is None),
                line2_text=dto.line2_text.strip() if dto.line2_text else None,
                sale_price=to_money(dto.sale_price),
                msp_at_order=to_money(msp),
                commission_amount=breakdown.commission_amount,
                override_commission=breakdown.override_commission,
                override_agent_id=breakdown.override_agent_id,
                is_direct_sale=agent is None,
                is_below_msp=breakdown.is_below_msp,
                status=OrderStatus.PENDING_APPROVAL,
                payment_status=dto.payment_status,
                shipping_address=dto.shipping_address.model_dump() if dto.shipping_address else None,
                special_instructions=dto.special_instructions,
                **contact,
            )
            self.session.add(order)
            try:
                await self.session.commit()
            except IntegrityError as e:
                raise Conflict("Order number was taken concurrently") from e
            return order

        try:
            order = await retry_on_conflict(self.session, create)
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(order)

        if order.is_below_msp:
            logging.warning(
                f"Order #{order.order_number} sold at {order.sale_price}, below MSP {order.msp_at_order}; needs review"
            )
        logging.info(
            f"Order #{order.order_number} submitted"
            f" ({'direct' if order.is_direct_sale else f'agent {order.agent_id}'}),"
            f" commission {order.commission_amount}, override {order.override_commission}"
        )
        self.notifier.dispatch(
            "order_confirmation",
            order.customer_email,
            {
                "customer_name": order.customer_name,
                "order_number": order.order_number,
                "total": str(order.sale_price),
                "payment_status": order.payment_status.value,
            },
        )
        return SubmittedOrder(
            order_id=order.id,
            order_number=order.order_number,
            is_below_msp=order.is_below_msp,
            commission_amount=order.commission_amount,
            override_commission=order.override_commission,
        )

    def _validated_contact(self, dto: OrderSubmit) -> dict:
        name = dto.customer_name.strip()
        if not name:
            raise ValidationError("Customer name is required")

        phone = last_ten_digits(dto.customer_phone)
        if not PHONE_RE.match(phone):
            raise ValidationError("Please enter a valid 10-digit mobile number")

        email = dto.customer_email.strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email address")

        if dto.shipping_address and not PINCODE_RE.match(dto.shipping_address.pincode):
            raise ValidationError("Please enter a valid 6-digit pincode")

        whatsapp = last_ten_digits(dto.customer_whatsapp) if dto.customer_whatsapp else ""
        return {
            "customer_name": name,
            "customer_company": dto.customer_company.strip() if dto.customer_company else None,
            "customer_phone": phone,
            "customer_email": email,
            "customer_whatsapp": whatsapp or phone,
        }

    @staticmethod
    def _line1(text: str | None, *, direct: bool) -> str | None:
        if not text or not text.strip():
            if direct:
                raise ValidationError("Name for card (Line 1) is required")
            return None
        return text.strip().upper() if direct else text.strip()

    async def _resolve_design(self, card_design_id: uuid.UUID | None) -> CardDesign:
        if card_design_id:
            design = await self.session.get(CardDesign, card_design_id)
            if not design:
                raise NotFound("Card design not found")
            if design.status != CardDesignStatus.ACTIVE:
                raise ValidationError("Card design is not available")
            return design

        design = await self.session.scalar(
            select(CardDesign).where(CardDesign.status == CardDesignStatus.ACTIVE).order_by(CardDesign.created_at).limit(1)
        )
        if design:
            return design

        design = CardDesign(name="Default Template", description="Default card design", base_msp=self.default_base_msp)
        self.session.add(design)
        await self.session.flush()
        logging.info(f"Created default card design {design.id}")
        return design

    async def _resolve_msp(self, agent: Agent | None, design: CardDesign) -> Decimal:
        if agent:
            msp = await self.session.scalar(
                select(AgentMsp.msp_amount).where(AgentMsp.agent_id == agent.id, AgentMsp.card_design_id == design.id)
            )
            if msp is not None:
                return to_money(msp)
        if design.base_msp is not None:
            return to_money(design.base_msp)
        return self.default_base_msp

    async def _next_order_number(self) -> int:
        current = await self.session.scalar(select(func.max(Order.order_number)))
        return (current or 0) + 1

    # ========================================================================
    # Status changes
    # ========================================================================

    async def transition_order(
        self,
        order_id: uuid.UUID,
        target: OrderStatus,
        *,
        reason: str | None = None,
        tracking_number: str | None = None,
        admin_notes: str | None = None,
    ) -> Order:
        if target == OrderStatus.APPROVED:
            order = await self.get_order(order_id)
            self.state_machine.validate(order.status, target)
            await self.approve_order(order_id, admin_notes=admin_notes)
            return await self.get_order(order_id)
        if target == OrderStatus.REJECTED:
            return await self.reject_order(order_id, reason, admin_notes=admin_notes)

        async def move() -> Order:
            order = await self._load_for_update(order_id)
            await self.state_machine.apply(
                self.session, order, target, tracking_number=tracking_number, admin_notes=admin_notes
            )
            if target == self.credit_status:
                await self.ledger.credit_order(order)
            await self.session.commit()
            return order

        try:
            return await retry_on_conflict(self.session, move)
        except Exception:
            await self.session.rollback()
            raise

    async def approve_order(self, order_id: uuid.UUID, admin_notes: str | None = None) -> ApprovalResult:
        return await self.approval.approve(order_id, admin_notes=admin_notes)

    async def reject_order(self, order_id: uuid.UUID, reason: str | None, admin_notes: str | None = None) -> Order:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        async def reject() -> Order:
            order = await self._load_for_update(order_id)
            await self.state_machine.apply(
                self.session, order, OrderStatus.REJECTED, reason=reason, admin_notes=admin_notes
            )
            await self.session.commit()
            return order

        try:
            order = await retry_on_conflict(self.session, reject)
        except Exception:
            await self.session.rollback()
            raise
        logging.info(f"Order #{order.order_number} rejected. Reason: {order.rejection_reason}")
        return order

    async def update_order_details(self, order_id: uuid.UUID, dto: OrderDetailsUpdate) -> Order:
        """Edit labels that live outside the status graph."""
        changes = dto.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return await self.get_order(order_id)

        async def edit() -> Order:
            order = await self._load_for_update(order_id)
            result = await self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.version == order.version)
                .values(**changes, version=order.version + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise Conflict(f"Order {order.id} was modified concurrently")
            await self.session.commit()
            await self.session.refresh(order)
            return order

        try:
            return await retry_on_conflict(self.session, edit)
        except Exception:
            await self.session.rollback()
            raise

    async def _load_for_update(self, order_id: uuid.UUID) -> Order:
        order = await self.session.get(Order, order_id, with_for_update=True, populate_existing=True)
        if not order:
            raise NotFound("Order not found")
        return order

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_order(self, order_id: uuid.UUID) -> Order:
        order = await self.session.get(Order, order_id, populate_existing=True)
        if not order:
            raise NotFound("Order not found")
        return order

    async def list_orders(
        self,
        status: OrderStatus | None = None,
        agent_id: uuid.UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        query = select(Order).order_by(Order.created_at.desc(), Order.order_number.desc())
        if status:
            query = query.where(Order.status == status)
        if agent_id:
            query = query.where(Order.agent_id == agent_id)
        result = await self.session.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def track_order(self, order_number: int, email: str) -> OrderTracking:
        email = email.strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email address")
        order = await self.session.scalar(
            select(Order).where(Order.order_number == order_number, Order.customer_email == email)
        )
        if not order:
            raise NotFound("Order not found. Please check your order number and email.")

        return OrderTracking(
            order_number=order.order_number,
            status=order.status,
            status_label=STATUS_LABELS[order.status],
            payment_status=order.payment_status.value,
            tracking_number=order.tracking_number,
            timeline=self._timeline(order),
        )

    @staticmethod
    def _timeline(order: Order) -> list[TimelineStep]:
        stamps = {
            OrderStatus.PENDING_APPROVAL: order.created_at,
            OrderStatus.APPROVED: order.approved_at,
            OrderStatus.SHIPPED: order.shipped_at,
            OrderStatus.DELIVERED: order.delivered_at,
            OrderStatus.PAID: order.paid_at,
        }
        reached = PIPELINE.index(order.status) if order.status in PIPELINE else 0
        return [
            TimelineStep(
                status=status,
                label=STATUS_LABELS[status],
                completed=order.status in PIPELINE and index <= reached,
                timestamp=stamps.get(status) if order.status in PIPELINE and index <= reached else None,
            )
            for index, status in enumerate(PIPELINE)
        ]
