"""Order status graph and the compare-and-swap write that moves an order along it."""
import logging
from datetime import datetime
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Order, OrderStatus, OrderStatusEvent, PaymentStatus
from services.errors import Conflict, InvalidTransition, ValidationError
from utils.clock import utcnow

T = TypeVar("T")

S = OrderStatus

_TRANSITIONS: Mapping[OrderStatus, frozenset] = MappingProxyType({
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.REJECTED}),
    S.APPROVED: frozenset({S.PRINTING}),
    S.PRINTING: frozenset({S.PRINTED}),
    S.PRINTED: frozenset({S.READY_TO_SHIP}),
    S.READY_TO_SHIP: frozenset({S.SHIPPED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset({S.PAID}),
    S.PAID: frozenset(),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
})

_MILESTONE_COLUMNS: Mapping[OrderStatus, str] = MappingProxyType({
    S.APPROVED: "approved_at",
    S.SHIPPED: "shipped_at",
    S.DELIVERED: "delivered_at",
    S.PAID: "paid_at",
})


class OrderStateMachine:
    def __init__(self, allow_reject_after_approval: bool = False):
        transitions = dict(_TRANSITIONS)
        if allow_reject_after_approval:
            transitions[S.APPROVED] = transitions[S.APPROVED] | {S.REJECTED}
        self._transitions = MappingProxyType(transitions)

    def allowed_targets(self, status: OrderStatus) -> frozenset:
        return self._transitions.get(status, frozenset())

    def can_transition(self, current: OrderStatus, target: OrderStatus) -> bool:
        return target in self.allowed_targets(current)

    def validate(self, current: OrderStatus, target: OrderStatus, *, reason: str | None = None) -> None:
        if not self.can_transition(current, target):
            raise InvalidTransition(current, target)
        if target == S.REJECTED and not (reason and reason.strip()):
            raise ValidationError("Rejection reason is required")

    def build_changes(
        self,
        target: OrderStatus,
        *,
        now: datetime,
        reason: str | None = None,
        tracking_number: str | None = None,
        admin_notes: str | None = None,
        **extra: Any,
    ) -> dict:
        """Column values written together with the status change."""
        changes: dict = {"status": target, "updated_at": now}
        column = _MILESTONE_COLUMNS.get(target)
        if column:
            changes[column] = now
        if target == S.PAID:
            changes["payment_status"] = PaymentStatus.PAID
        if target == S.SHIPPED and tracking_number:
            changes["tracking_number"] = tracking_number
        if target == S.REJECTED:
            changes["rejection_reason"] = reason.strip()
        if admin_notes is not None:
            changes["admin_notes"] = admin_notes
        changes.update(extra)
        return changes

    async def apply(
        self,
        session: AsyncSession,
        order: Order,
        target: OrderStatus,
        *,
        reason: str | None = None,
        tracking_number: str | None = None,
        admin_notes: str | None = None,
        **extra: Any,
    ) -> Order:
        """Move ``order`` to ``target`` inside the caller's transaction.

        The row is only written if it still carries the status and version
        that were read; otherwise ``Conflict`` is raised and nothing changes.
        """
        current = order.status
        self.validate(current, target, reason=reason)
        now = utcnow()
        changes = self.build_changes(
            target, now=now, reason=reason, tracking_number=tracking_number, admin_notes=admin_notes, **extra
        )
        stmt = (
            update(Order)
            .where(Order.id == order.id, Order.status == current, Order.version == order.version)
            .values(**changes, version=order.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise Conflict(f"Order {order.id} was modified concurrently")

        session.add(OrderStatusEvent(
            order_id=order.id,
            from_status=current,
            to_status=target,
            payload_json={"tracking_number": tracking_number} if target == S.SHIPPED and tracking_number else None,
        ))
        await session.flush()
        await session.refresh(order)
        logging.info(f"Order #{order.order_number} moved {current.value} -> {target.value}")
        return order


async def retry_on_conflict(session: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run ``operation``; on a lost optimistic race re-read and try exactly once more."""
    try:
        return await operation()
    except Conflict as e:
        await session.rollback()
        logging.warning(f"{e}; retrying once")
    try:
        return await operation()
    except Conflict as e:
        await session.rollback()
        raise Conflict("The order was changed by someone else, please retry") from e
