"""Tests for order submission, details edits, listing and public tracking."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from api.models import AgentMsp, AgentStatus, CardDesign, CardDesignStatus, Order, OrderStatus, PaymentStatus
from services.errors import NotFound, ValidationError
from services.orders.schemas import OrderDetailsUpdate

from conftest import advance, submit_payload

S = OrderStatus


class TestSubmit:
    async def test_direct_order_defaults(self, order_service, notifier, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.get_order(submitted.order_id)

        assert order.order_number == 1
        assert order.status == S.PENDING_APPROVAL
        assert order.is_direct_sale
        assert order.commission_amount == Decimal("0.00")
        assert order.msp_at_order == Decimal("600.00")
        assert order.customer_phone == "9876543210"
        assert order.customer_whatsapp == "9876543210"
        assert order.customer_email == "priya@example.com"
        assert order.line1_text == "PRIYA SHARMA"
        assert order.shipping_address["pincode"] == "411001"

        await notifier.drain()
        assert notifier.sent[0][0] == "order_confirmation"
        assert notifier.sent[0][2]["order_number"] == 1

    async def test_order_numbers_are_sequential(self, order_service, design) -> None:
        first = await order_service.submit_order(submit_payload())
        second = await order_service.submit_order(submit_payload())
        assert (first.order_number, second.order_number) == (1, 2)

    async def test_below_msp_is_accepted_and_flagged(self, order_service, design, make_agent) -> None:
        agent = await make_agent()
        submitted = await order_service.submit_order(submit_payload(agent_id=agent.id, sale_price=Decimal("500")))
        assert submitted.is_below_msp
        assert submitted.commission_amount == Decimal("100.00")

    async def test_agent_msp_overrides_design(self, order_service, session, design, make_agent) -> None:
        agent = await make_agent()
        session.add(AgentMsp(agent_id=agent.id, card_design_id=design.id, msp_amount=Decimal("450")))
        await session.commit()

        submitted = await order_service.submit_order(submit_payload(agent_id=agent.id, sale_price=Decimal("500")))
        order = await order_service.get_order(submitted.order_id)
        assert order.msp_at_order == Decimal("450.00")
        assert not order.is_below_msp

    async def test_default_design_created_when_catalog_empty(self, order_service, session) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.get_order(submitted.order_id)
        design = await session.get(CardDesign, order.card_design_id)
        assert design.name == "Default Template"
        assert order.msp_at_order == Decimal("599.00")

    async def test_inactive_design_refused(self, order_service, session, design) -> None:
        design.status = CardDesignStatus.INACTIVE
        await session.commit()
        with pytest.raises(ValidationError):
            await order_service.submit_order(submit_payload(card_design_id=design.id))

    async def test_inactive_agent_refused(self, order_service, session, design, make_agent) -> None:
        agent = await make_agent()
        agent.status = AgentStatus.INACTIVE
        await session.commit()
        with pytest.raises(ValidationError):
            await order_service.submit_order(submit_payload(agent_id=agent.id))

    async def test_refused_order_leaves_no_default_design(self, order_service, session, make_agent) -> None:
        agent = await make_agent()
        agent.status = AgentStatus.INACTIVE
        await session.commit()
        with pytest.raises(ValidationError):
            await order_service.submit_order(submit_payload(agent_id=agent.id))
        assert await session.scalar(select(func.count()).select_from(CardDesign)) == 0

    async def test_failed_insert_rolls_back_default_design(self, order_service, session_maker, monkeypatch) -> None:
        async def broken_number() -> int:
            raise RuntimeError("sequence unavailable")

        monkeypatch.setattr(order_service, "_next_order_number", broken_number)
        with pytest.raises(RuntimeError):
            await order_service.submit_order(submit_payload())

        async with session_maker() as check:
            assert await check.scalar(select(func.count()).select_from(CardDesign)) == 0

    async def test_unknown_agent(self, order_service, design) -> None:
        with pytest.raises(NotFound):
            await order_service.submit_order(submit_payload(agent_id=uuid.uuid4()))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"customer_phone": "12345"},
            {"customer_phone": "5123456789"},
            {"customer_email": "not-an-email"},
            {"customer_name": "   "},
            {"line1_text": ""},
            {
                "shipping_address": {
                    "flat": "1", "street": "MG Road", "city": "Pune", "pincode": "4110",
                }
            },
        ],
    )
    async def test_contact_validation(self, order_service, session, design, overrides) -> None:
        with pytest.raises(ValidationError):
            await order_service.submit_order(submit_payload(**overrides))
        assert await session.scalar(select(func.count()).select_from(Order)) == 0

    async def test_agent_order_line1_is_optional(self, order_service, design, make_agent) -> None:
        agent = await make_agent()
        submitted = await order_service.submit_order(submit_payload(agent_id=agent.id, line1_text=None))
        order = await order_service.get_order(submitted.order_id)
        assert order.line1_text is None


class TestDetails:
    async def test_update_labels_bumps_version(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.update_order_details(
            submitted.order_id,
            OrderDetailsUpdate(payment_status=PaymentStatus.ADVANCE_PAID, admin_notes="Called customer"),
        )
        assert order.payment_status == PaymentStatus.ADVANCE_PAID
        assert order.admin_notes == "Called customer"
        assert order.status == S.PENDING_APPROVAL
        assert order.paid_at is None
        assert order.version == 2

    async def test_empty_update_is_noop(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        order = await order_service.update_order_details(submitted.order_id, OrderDetailsUpdate())
        assert order.version == 1


class TestQueries:
    async def test_list_filters_by_status_and_agent(self, order_service, design, make_agent) -> None:
        agent = await make_agent()
        direct = await order_service.submit_order(submit_payload())
        mine = await order_service.submit_order(submit_payload(agent_id=agent.id))
        await order_service.reject_order(direct.order_id, "Spam")

        pending = await order_service.list_orders(status=S.PENDING_APPROVAL)
        assert [o.id for o in pending] == [mine.order_id]
        by_agent = await order_service.list_orders(agent_id=agent.id)
        assert [o.id for o in by_agent] == [mine.order_id]
        assert len(await order_service.list_orders(limit=1)) == 1

    async def test_tracking_timeline(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)
        await advance(order_service, submitted.order_id, S.PRINTING, S.PRINTED, S.READY_TO_SHIP)
        await order_service.transition_order(submitted.order_id, S.SHIPPED, tracking_number="BLUEDART42")

        tracking = await order_service.track_order(submitted.order_number, " PRIYA@example.com ")
        assert tracking.status == S.SHIPPED
        assert tracking.status_label == "Shipped"
        assert tracking.tracking_number == "BLUEDART42"
        completed = [step.status for step in tracking.timeline if step.completed]
        assert completed[-1] == S.SHIPPED
        assert len(completed) == 6
        assert tracking.timeline[-1].completed is False

    async def test_tracking_needs_matching_email(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        with pytest.raises(NotFound):
            await order_service.track_order(submitted.order_number, "someone@else.com")
