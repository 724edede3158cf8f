import asyncio
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Customer, Order, OrderStatus
from services.errors import AlreadyProcessed, Conflict, DependencyFailure, NotFound
from services.fulfillment.state_machine import OrderStateMachine, retry_on_conflict
from services.notifier import Notifier
from services.provisioning import AccountProvisioner, ProvisionedAccount
from utils.codes import CodeGenerator

SLUG_ATTEMPTS = 10


@dataclass(frozen=True)
class ApprovalResult:
    order_id: uuid.UUID
    order_number: int
    customer_id: uuid.UUID
    slug: str
    is_new_customer: bool


class ApprovalWorkflow:
    """
    Moves an order out of ``pending_approval`` and provisions its customer.

    Steps run in one database transaction:
    1. Check the order is still pending
    2. Get or create the login account (external, idempotent by email)
    3. Get or create the customer row and its unique public slug
    4. Compare-and-swap the order to ``approved``
    5. Commit, then send credentials without waiting for delivery

    If anything before the commit fails the transaction is rolled back and a
    login account created in step 2 is removed again, leaving the order pending.
    """

    def __init__(
        self,
        session: AsyncSession,
        state_machine: OrderStateMachine,
        provisioner: AccountProvisioner,
        notifier: Notifier,
        *,
        timeout: float = 10.0,
        profile_base_url: str = "",
    ):
        self.session = session
        self.state_machine = state_machine
        self.provisioner = provisioner
        self.notifier = notifier
        self.timeout = timeout
        self.profile_base_url = profile_base_url.rstrip("/")
        self.codes = CodeGenerator()

    async def approve(self, order_id: uuid.UUID, admin_notes: str | None = None) -> ApprovalResult:
        created: list[ProvisionedAccount] = []
        try:
            result = await asyncio.wait_for(
                retry_on_conflict(self.session, lambda: self._approve_once(order_id, created, admin_notes)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            await self.session.rollback()
            await self._compensate(created)
            raise DependencyFailure("Approval timed out, the order is still pending approval") from e
        except Exception:
            await self.session.rollback()
            await self._compensate(created)
            raise

        logging.info(f"Order #{result.order_number} approved. Customer: {result.customer_id}")
        return result

    async def _approve_once(
        self, order_id: uuid.UUID, created: list[ProvisionedAccount], admin_notes: str | None = None
    ) -> ApprovalResult:
        order = await self.session.get(Order, order_id, with_for_update=True, populate_existing=True)
        if not order:
            raise NotFound("Order not found")
        if order.status != OrderStatus.PENDING_APPROVAL:
            raise AlreadyProcessed(f"Order cannot be approved. Current status: {order.status.value}")

        account = await self._provision(order)
        if account.is_new:
            created.append(account)

        customer, is_new_customer = await self._get_or_create_customer(order, account)
        try:
            await self.state_machine.apply(
                self.session,
                order,
                OrderStatus.APPROVED,
                admin_notes=admin_notes,
                customer_id=customer.id,
                portfolio_slug=customer.slug,
            )
            await self.session.commit()
        except IntegrityError as e:
            # another approval inserted the same customer first
            raise Conflict(f"Customer for {order.customer_email} was created concurrently") from e

        if account.temporary_password:
            self.notifier.dispatch(
                "customer_welcome",
                order.customer_email,
                {
                    "customer_name": order.customer_name,
                    "order_number": order.order_number,
                    "email": order.customer_email,
                    "password": account.temporary_password,
                    "profile_url": f"{self.profile_base_url}/{customer.slug}",
                },
            )

        return ApprovalResult(
            order_id=order.id,
            order_number=order.order_number,
            customer_id=customer.id,
            slug=customer.slug,
            is_new_customer=is_new_customer,
        )

    async def _provision(self, order: Order) -> ProvisionedAccount:
        profile = {
            "full_name": order.customer_name,
            "phone": order.customer_phone,
            "company": order.customer_company,
        }
        try:
            return await self.provisioner.create_account(order.customer_email, profile)
        except DependencyFailure:
            raise
        except Exception as e:
            raise DependencyFailure(f"Failed to create customer account: {e}") from e

    async def _get_or_create_customer(self, order: Order, account: ProvisionedAccount) -> tuple[Customer, bool]:
        email = order.customer_email.lower()
        customer = await self.session.scalar(select(Customer).where(Customer.email == email))
        if customer:
            return customer, False

        customer = Customer(
            account_id=account.account_id,
            email=email,
            full_name=order.customer_name,
            phone=order.customer_phone,
            company=order.customer_company,
            slug=await self._unique_slug(order.customer_name),
        )
        self.session.add(customer)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise Conflict(f"Customer for {email} was created concurrently") from e
        return customer, True

    async def _unique_slug(self, name: str) -> str:
        for _ in range(SLUG_ATTEMPTS):
            slug = self.codes.slug(name)
            taken = await self.session.scalar(select(Customer.id).where(Customer.slug == slug))
            if not taken:
                taken = await self.session.scalar(select(Order.id).where(Order.portfolio_slug == slug))
            if not taken:
                return slug
        raise DependencyFailure(f"Could not find a free profile slug for {name!r}")

    async def _compensate(self, created: list[ProvisionedAccount]) -> None:
        for account in created:
            try:
                # a concurrent approval may already have linked this account
                in_use = await self.session.scalar(select(Customer.id).where(Customer.account_id == account.account_id))
                if in_use:
                    continue
                await self.provisioner.remove_account(account.account_id)
                logging.warning(f"Removed account {account.account_id} after failed approval")
            except Exception as e:
                logging.error(f"Could not remove account {account.account_id}: {e}", exc_info=True)
