import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import (
    Agent,
    CommissionEntry,
    CommissionKind,
    Expense,
    ExpenseCategory,
    Order,
    PaymentMethod,
    Payout,
    PayoutStatus,
)
from services.errors import DependencyFailure, InsufficientBalance, NotFound, ValidationError
from utils.clock import utcnow
from utils.money import to_money


@dataclass(frozen=True)
class CommissionLiability:
    agent_id: uuid.UUID
    full_name: str
    available_balance: Decimal
    last_payout_date: datetime | None


class PayoutLedger:
    """Agent earnings (credits) against payouts (debits).

    Every balance change is a single guarded UPDATE, so two writers racing on
    the same agent can never drive ``available_balance`` below zero.
    """

    def __init__(self, session: AsyncSession, timeout: float = 10.0):
        self.session = session
        self.timeout = timeout

    async def credit(
        self,
        agent_id: uuid.UUID,
        amount: Decimal,
        *,
        order: Order,
        kind: CommissionKind = CommissionKind.BASE,
    ) -> CommissionEntry | None:
        """Add ``amount`` to the agent's earnings and balance inside the caller's transaction.

        Returns None when this order already credited this agent for ``kind``.
        """
        amount = to_money(amount)
        if amount < 0:
            raise ValidationError("Credit amount cannot be negative")

        existing = await self.session.scalar(
            select(CommissionEntry).where(
                CommissionEntry.order_id == order.id,
                CommissionEntry.agent_id == agent_id,
                CommissionEntry.kind == kind,
            )
        )
        if existing:
            logging.info(f"Order #{order.order_number} already credited {kind.value} to agent {agent_id}")
            return None

        entry = CommissionEntry(
            agent_id=agent_id,
            order_id=order.id,
            kind=kind,
            base_amount=order.sale_price,
            commission=amount,
        )
        self.session.add(entry)

        values = {
            "total_earnings": Agent.total_earnings + amount,
            "available_balance": Agent.available_balance + amount,
            "updated_at": utcnow(),
        }
        if kind == CommissionKind.BASE:
            values["total_sales"] = Agent.total_sales + 1
        result = await self.session.execute(
            update(Agent).where(Agent.id == agent_id).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound(f"Agent {agent_id} not found")
        await self.session.flush()
        # keep any loaded Agent in step with the row
        await self.session.get(Agent, agent_id, populate_existing=True)

        logging.info(f"Credited {amount} ({kind.value}) to agent {agent_id} for order #{order.order_number}")
        return entry

    async def credit_order(self, order: Order) -> list[CommissionEntry]:
        """Post the commission frozen on ``order`` to its agent and, if any, the override recipient."""
        entries: list[CommissionEntry] = []
        if order.is_direct_sale or order.agent_id is None:
            return entries

        entry = await self.credit(order.agent_id, order.commission_amount, order=order, kind=CommissionKind.BASE)
        if entry:
            entries.append(entry)
        if order.override_agent_id and order.override_commission > 0:
            entry = await self.credit(
                order.override_agent_id, order.override_commission, order=order, kind=CommissionKind.OVERRIDE
            )
            if entry:
                entries.append(entry)
        return entries

    async def payout(
        self,
        agent_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        notes: str | None = None,
    ) -> Payout:
        """Debit the agent's balance, record the payout and book it as an expense, all or nothing."""
        try:
            return await asyncio.wait_for(self._payout(agent_id, amount, method, notes), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self.session.rollback()
            raise DependencyFailure("Payout timed out, nothing was recorded") from e

    async def _payout(self, agent_id: uuid.UUID, amount: Decimal, method: PaymentMethod, notes: str | None) -> Payout:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payout amount must be greater than zero")

        agent = await self.session.get(Agent, agent_id)
        if not agent:
            raise NotFound("Agent not found")

        try:
            debit = await self.session.execute(
                update(Agent)
                .where(Agent.id == agent_id, Agent.available_balance >= amount)
                .values(available_balance=Agent.available_balance - amount, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if debit.rowcount != 1:
                available = await self.session.scalar(select(Agent.available_balance).where(Agent.id == agent_id))
                raise InsufficientBalance(amount, to_money(available))

            payout = Payout(
                agent_id=agent_id,
                amount=amount,
                payment_method=method,
                admin_notes=notes,
                status=PayoutStatus.COMPLETED,
            )
            self.session.add(payout)
            await self.session.flush()

            self.session.add(Expense(
                category=ExpenseCategory.AGENT_COMMISSION,
                amount=amount,
                description=f"Payout to agent {agent.full_name}",
                expense_date=utcnow().date(),
                agent_payout_id=payout.id,
            ))
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DependencyFailure("Could not record payout") from e
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(payout)
        await self.session.refresh(agent)
        logging.info(f"Paid out {amount} to agent {agent_id} via {method.value}")
        return payout

    async def get_balance(self, agent_id: uuid.UUID) -> Decimal:
        balance = await self.session.scalar(select(Agent.available_balance).where(Agent.id == agent_id))
        if balance is None:
            raise NotFound("Agent not found")
        return to_money(balance)

    async def get_commission_liabilities(self) -> list[CommissionLiability]:
        last_payout = (
            select(Payout.agent_id, func.max(Payout.created_at).label("last_payout_date"))
            .group_by(Payout.agent_id)
            .subquery()
        )
        query = (
            select(Agent.id, Agent.full_name, Agent.available_balance, last_payout.c.last_payout_date)
            .outerjoin(last_payout, last_payout.c.agent_id == Agent.id)
            .where(Agent.available_balance > 0)
            .order_by(Agent.available_balance.desc())
        )
        result = await self.session.execute(query)
        return [
            CommissionLiability(
                agent_id=row.id,
                full_name=row.full_name,
                available_balance=to_money(row.available_balance),
                last_payout_date=row.last_payout_date,
            )
            for row in result.all()
        ]

    async def get_payout_history(self, agent_id: uuid.UUID) -> list[Payout]:
        if not await self.session.get(Agent, agent_id):
            raise NotFound("Agent not found")
        query = select(Payout).where(Payout.agent_id == agent_id).order_by(Payout.created_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())
