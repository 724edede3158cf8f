"""Tests for the order status graph and the compare-and-swap write."""

import pytest
from sqlalchemy import select

from api.models import Order, OrderStatus, OrderStatusEvent, PaymentStatus
from services.errors import Conflict, InvalidTransition, ValidationError
from services.fulfillment.state_machine import OrderStateMachine, retry_on_conflict
from utils.clock import utcnow

from conftest import advance, submit_payload

S = OrderStatus

HAPPY_PATH = [
    S.PENDING_APPROVAL,
    S.APPROVED,
    S.PRINTING,
    S.PRINTED,
    S.READY_TO_SHIP,
    S.SHIPPED,
    S.DELIVERED,
    S.PAID,
]


class TestGraph:
    def test_happy_path_edges_are_legal(self) -> None:
        sm = OrderStateMachine()
        for current, target in zip(HAPPY_PATH, HAPPY_PATH[1:]):
            assert sm.can_transition(current, target), f"{current.value} -> {target.value}"

    def test_only_listed_edges_are_legal(self) -> None:
        sm = OrderStateMachine()
        legal = set(zip(HAPPY_PATH, HAPPY_PATH[1:])) | {(S.PENDING_APPROVAL, S.REJECTED)}
        for current in S:
            for target in S:
                assert sm.can_transition(current, target) == ((current, target) in legal)

    def test_no_skipping_ahead(self) -> None:
        sm = OrderStateMachine()
        with pytest.raises(InvalidTransition):
            sm.validate(S.APPROVED, S.SHIPPED)

    def test_terminal_states(self) -> None:
        sm = OrderStateMachine()
        assert sm.allowed_targets(S.PAID) == frozenset()
        assert sm.allowed_targets(S.REJECTED) == frozenset()
        assert sm.allowed_targets(S.CANCELLED) == frozenset()
        assert sm.allowed_targets(S.DELIVERED) == frozenset({S.PAID})

    def test_cancelled_is_unreachable(self) -> None:
        sm = OrderStateMachine(allow_reject_after_approval=True)
        assert not any(sm.can_transition(s, S.CANCELLED) for s in S)

    def test_reject_after_approval_is_opt_in(self) -> None:
        assert not OrderStateMachine().can_transition(S.APPROVED, S.REJECTED)
        assert OrderStateMachine(allow_reject_after_approval=True).can_transition(S.APPROVED, S.REJECTED)

    def test_reject_requires_reason(self) -> None:
        sm = OrderStateMachine()
        with pytest.raises(ValidationError):
            sm.validate(S.PENDING_APPROVAL, S.REJECTED, reason="   ")

    def test_error_names_both_statuses(self) -> None:
        sm = OrderStateMachine()
        with pytest.raises(InvalidTransition) as exc:
            sm.validate(S.PAID, S.SHIPPED)
        assert "paid" in str(exc.value)
        assert "shipped" in str(exc.value)


class TestBuildChanges:
    def test_milestones_are_stamped(self) -> None:
        sm = OrderStateMachine()
        now = utcnow()
        assert sm.build_changes(S.SHIPPED, now=now, tracking_number="DTDC123")["shipped_at"] == now
        assert sm.build_changes(S.SHIPPED, now=now, tracking_number="DTDC123")["tracking_number"] == "DTDC123"
        assert sm.build_changes(S.DELIVERED, now=now)["delivered_at"] == now
        assert "shipped_at" not in sm.build_changes(S.PRINTING, now=now)

    def test_paid_marks_payment_status(self) -> None:
        changes = OrderStateMachine().build_changes(S.PAID, now=utcnow())
        assert changes["payment_status"] == PaymentStatus.PAID
        assert changes["paid_at"] is not None


class TestTransitions:
    async def test_below_msp_order_cannot_skip_approval(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload(sale_price=500))
        assert submitted.is_below_msp

        with pytest.raises(InvalidTransition):
            await order_service.transition_order(submitted.order_id, S.PRINTING)

        order = await order_service.get_order(submitted.order_id)
        assert order.status == S.PENDING_APPROVAL
        assert order.version == 1

    async def test_every_write_bumps_version_and_records_event(self, order_service, session, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        order = await advance(order_service, submitted.order_id, S.PRINTING, S.PRINTED)
        assert order.status == S.PRINTED
        assert order.version == 4

        events = (await session.scalars(
            select(OrderStatusEvent).where(OrderStatusEvent.order_id == order.id).order_by(OrderStatusEvent.id)
        )).all()
        assert [(e.from_status, e.to_status) for e in events] == [
            (S.PENDING_APPROVAL, S.APPROVED),
            (S.APPROVED, S.PRINTING),
            (S.PRINTING, S.PRINTED),
        ]

    async def test_reject_shipped_order_is_invalid(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        await advance(order_service, submitted.order_id, S.PRINTING, S.PRINTED, S.READY_TO_SHIP, S.SHIPPED)

        with pytest.raises(InvalidTransition):
            await order_service.reject_order(submitted.order_id, "Customer changed mind")
        order = await order_service.get_order(submitted.order_id)
        assert order.status == S.SHIPPED
        assert order.rejection_reason is None

    async def test_reject_pending_order(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.reject_order(submitted.order_id, "Duplicate order")
        assert order.status == S.REJECTED
        assert order.rejection_reason == "Duplicate order"

        with pytest.raises(InvalidTransition):
            await order_service.transition_order(submitted.order_id, S.APPROVED)

    async def test_transition_to_approved_on_printing_order_is_invalid(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        await order_service.transition_order(submitted.order_id, S.PRINTING)

        with pytest.raises(InvalidTransition):
            await order_service.transition_order(submitted.order_id, S.APPROVED)

    async def test_shipping_stores_tracking_number(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        await advance(order_service, submitted.order_id, S.PRINTING, S.PRINTED, S.READY_TO_SHIP)
        order = await order_service.transition_order(submitted.order_id, S.SHIPPED, tracking_number="DTDC998877")
        assert order.tracking_number == "DTDC998877"
        assert order.shipped_at is not None

    async def test_tracking_number_ignored_before_shipping(self, order_service, session, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        order = await order_service.transition_order(submitted.order_id, S.PRINTING, tracking_number="DTDC000111")
        assert order.tracking_number is None

        event = await session.scalar(
            select(OrderStatusEvent).where(
                OrderStatusEvent.order_id == order.id, OrderStatusEvent.to_status == S.PRINTING
            )
        )
        assert event.payload_json is None

    async def test_shipping_event_records_tracking_number(self, order_service, session, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        await advance(order_service, submitted.order_id, S.PRINTING, S.PRINTED, S.READY_TO_SHIP)
        await order_service.transition_order(submitted.order_id, S.SHIPPED, tracking_number="DTDC998877")

        event = await session.scalar(
            select(OrderStatusEvent).where(
                OrderStatusEvent.order_id == submitted.order_id, OrderStatusEvent.to_status == S.SHIPPED
            )
        )
        assert event.payload_json == {"tracking_number": "DTDC998877"}

    async def test_approve_through_transition_keeps_admin_notes(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.transition_order(
            submitted.order_id, S.APPROVED, admin_notes="Checked address by phone"
        )
        assert order.status == S.APPROVED
        assert order.admin_notes == "Checked address by phone"

    async def test_reject_through_transition_keeps_admin_notes(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.transition_order(
            submitted.order_id, S.REJECTED, reason="Duplicate order", admin_notes="Same customer as #1"
        )
        assert order.status == S.REJECTED
        assert order.admin_notes == "Same customer as #1"


class TestOptimisticConcurrency:
    async def test_stale_version_raises_conflict(self, session_maker, make_order_service, design) -> None:
        async with session_maker() as setup:
            submitted = await make_order_service(setup).submit_order(submit_payload())
            await make_order_service(setup).approve_order(submitted.order_id)

        async with session_maker() as first, session_maker() as second:
            stale = await first.get(Order, submitted.order_id)
            await make_order_service(second).transition_order(submitted.order_id, S.PRINTING)

            with pytest.raises(Conflict):
                await OrderStateMachine().apply(first, stale, S.PRINTING)
            await first.rollback()

        async with session_maker() as check:
            order = await check.get(Order, submitted.order_id)
            assert order.status == S.PRINTING
            assert order.version == 3

    async def test_retry_runs_operation_once_more(self, session) -> None:
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise Conflict("lost the race")
            return "done"

        assert await retry_on_conflict(session, flaky) == "done"
        assert len(calls) == 2

    async def test_second_conflict_surfaces_retry_message(self, session) -> None:
        async def always_conflicts():
            raise Conflict("lost the race")

        with pytest.raises(Conflict, match="please retry"):
            await retry_on_conflict(session, always_conflicts)
