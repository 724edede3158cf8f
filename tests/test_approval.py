"""Tests for order approval: customer provisioning, idempotence and compensation."""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from api.models import Customer, OrderStatus
from services.errors import AlreadyProcessed, Conflict, DependencyFailure, NotFound
from services.fulfillment.state_machine import OrderStateMachine

from conftest import FakeProvisioner, RecordingNotifier, submit_payload


class ConflictingStateMachine(OrderStateMachine):
    """Loses every compare-and-swap race."""

    async def apply(self, session, order, target, **kwargs):
        raise Conflict(f"Order {order.id} was modified concurrently")


class TestApprove:
    async def test_approval_creates_customer_and_slug(self, order_service, session, notifier, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        result = await order_service.approve_order(submitted.order_id)

        assert result.is_new_customer
        assert result.slug.startswith("priya-sharma-")

        order = await order_service.get_order(submitted.order_id)
        assert order.status == OrderStatus.APPROVED
        assert order.customer_id == result.customer_id
        assert order.portfolio_slug == result.slug
        assert order.approved_at is not None

        customer = await session.get(Customer, result.customer_id)
        assert customer.email == "priya@example.com"
        assert customer.account_id == "acc-1"

        await notifier.drain()
        templates = [t for t, _, _ in notifier.sent]
        assert templates == ["order_confirmation", "customer_welcome"]
        welcome = notifier.sent[-1][2]
        assert welcome["password"] == "Tmp#4821"
        assert welcome["profile_url"] == f"https://cards.test/{result.slug}"

    async def test_second_approval_is_already_processed(self, order_service, session, provisioner, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.approve_order(submitted.order_id)

        with pytest.raises(AlreadyProcessed, match="approved"):
            await order_service.approve_order(submitted.order_id)

        assert await session.scalar(select(func.count()).select_from(Customer)) == 1
        assert provisioner.calls == 1

    async def test_returning_customer_is_reused(self, order_service, session, notifier, design) -> None:
        first = await order_service.submit_order(submit_payload())
        second = await order_service.submit_order(submit_payload(customer_email="priya@example.com"))

        one = await order_service.approve_order(first.order_id)
        two = await order_service.approve_order(second.order_id)

        assert one.customer_id == two.customer_id
        assert not two.is_new_customer
        assert await session.scalar(select(func.count()).select_from(Customer)) == 1

        await notifier.drain()
        assert [t for t, _, _ in notifier.sent].count("customer_welcome") == 1

    async def test_unknown_order(self, order_service) -> None:
        with pytest.raises(NotFound):
            await order_service.approve_order(uuid.uuid4())

    async def test_rejected_order_cannot_be_approved(self, order_service, design) -> None:
        submitted = await order_service.submit_order(submit_payload())
        await order_service.reject_order(submitted.order_id, "Fake details")
        with pytest.raises(AlreadyProcessed, match="rejected"):
            await order_service.approve_order(submitted.order_id)


class TestFailures:
    async def test_provisioning_failure_leaves_order_pending(self, session, make_order_service, design) -> None:
        service = make_order_service(session, provisioner=FakeProvisioner(fail=True))
        submitted = await service.submit_order(submit_payload())

        with pytest.raises(DependencyFailure):
            await service.approve_order(submitted.order_id)

        order = await service.get_order(submitted.order_id)
        assert order.status == OrderStatus.PENDING_APPROVAL
        assert order.customer_id is None
        assert await session.scalar(select(func.count()).select_from(Customer)) == 0

    async def test_lost_race_removes_new_account(self, session, make_order_service, provisioner, design) -> None:
        service = make_order_service(session, state_machine=ConflictingStateMachine())
        submitted = await service.submit_order(submit_payload())

        with pytest.raises(Conflict, match="please retry"):
            await service.approve_order(submitted.order_id)

        assert provisioner.removed == ["acc-1"]
        assert provisioner.accounts == {}
        order = await service.get_order(submitted.order_id)
        assert order.status == OrderStatus.PENDING_APPROVAL
        assert await session.scalar(select(func.count()).select_from(Customer)) == 0

    async def test_timeout_rolls_back(self, session, make_order_service, design) -> None:
        service = make_order_service(session, provisioner=FakeProvisioner(delay=1.0), timeout=0.05)
        submitted = await service.submit_order(submit_payload())

        with pytest.raises(DependencyFailure, match="timed out"):
            await service.approve_order(submitted.order_id)

        order = await service.get_order(submitted.order_id)
        assert order.status == OrderStatus.PENDING_APPROVAL

    async def test_notification_failure_does_not_undo_approval(self, session, make_order_service, design) -> None:
        failing = RecordingNotifier(fail=True)
        service = make_order_service(session)
        service.notifier = failing
        service.approval.notifier = failing
        submitted = await service.submit_order(submit_payload())

        result = await service.approve_order(submitted.order_id)
        await failing.drain()

        order = await service.get_order(submitted.order_id)
        assert order.status == OrderStatus.APPROVED
        assert order.customer_id == result.customer_id


class TestConcurrentApproval:
    async def test_duplicate_requests_create_one_customer(self, session_maker, make_order_service, provisioner, design) -> None:
        async with session_maker() as setup:
            submitted = await make_order_service(setup).submit_order(submit_payload())

        async def approve():
            async with session_maker() as s:
                return await make_order_service(s).approve_order(submitted.order_id)

        results = await asyncio.gather(approve(), approve(), return_exceptions=True)

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert sum(isinstance(r, AlreadyProcessed) for r in results) == 1
        async with session_maker() as check:
            assert await check.scalar(select(func.count()).select_from(Customer)) == 1
        assert provisioner.removed == []
