import os

os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.models import Agent, Base, CardDesign
from services.agents.service import AgentService
from services.approval.service import ApprovalWorkflow
from services.commission.calculator import CommissionCalculator
from services.commission.hierarchy import AgentHierarchyResolver
from services.errors import DependencyFailure
from services.fulfillment.state_machine import OrderStateMachine
from services.ledger.service import PayoutLedger
from services.notifier import Notifier
from services.orders.schemas import OrderSubmit
from services.orders.service import OrderService
from services.provisioning import AccountProvisioner, ProvisionedAccount


class FakeProvisioner(AccountProvisioner):
    """In-memory auth provider, idempotent by email like the real one."""

    def __init__(self, fail: bool = False, delay: float = 0):
        self.accounts: dict[str, str] = {}
        self.removed: list[str] = []
        self.calls = 0
        self.fail = fail
        self.delay = delay

    async def create_account(self, email: str, profile: dict) -> ProvisionedAccount:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DependencyFailure("auth provider unavailable")
        if email in self.accounts:
            return ProvisionedAccount(account_id=self.accounts[email], is_new=False)
        account_id = f"acc-{len(self.accounts) + len(self.removed) + 1}"
        self.accounts[email] = account_id
        return ProvisionedAccount(account_id=account_id, is_new=True, temporary_password="Tmp#4821")

    async def remove_account(self, account_id: str) -> None:
        self.removed.append(account_id)
        self.accounts = {k: v for k, v in self.accounts.items() if v != account_id}


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        super().__init__(url=None)
        self.sent: list[tuple[str, str, dict]] = []
        self.fail = fail

    async def send(self, template_id: str, recipient: str, variables: dict) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append((template_id, recipient, variables))


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fulfillment.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def state_machine():
    return OrderStateMachine()


@pytest.fixture
def make_order_service(state_machine, provisioner, notifier):
    def factory(session: AsyncSession, **overrides) -> OrderService:
        sm = overrides.pop("state_machine", state_machine)
        hierarchy = AgentHierarchyResolver(session)
        approval = ApprovalWorkflow(
            session,
            sm,
            overrides.pop("provisioner", provisioner),
            notifier,
            timeout=overrides.pop("timeout", 5.0),
            profile_base_url="https://cards.test",
        )
        return OrderService(
            session,
            state_machine=sm,
            calculator=CommissionCalculator(Decimal("2")),
            hierarchy=hierarchy,
            ledger=PayoutLedger(session),
            approval=approval,
            notifier=notifier,
            **overrides,
        )

    return factory


@pytest.fixture
def order_service(session, make_order_service):
    return make_order_service(session)


@pytest.fixture
def agent_service(session, notifier):
    return AgentService(session, AgentHierarchyResolver(session), notifier)


@pytest.fixture
def ledger(session):
    return PayoutLedger(session)


@pytest.fixture
async def design(session):
    design = CardDesign(name="Classic Black", base_msp=Decimal("600.00"))
    session.add(design)
    await session.commit()
    return design


@pytest.fixture
def make_agent(session):
    counter = iter(range(1, 1000))

    async def factory(
        name: str = "Ravi Kumar",
        parent: Agent | None = None,
        base_commission: Decimal = Decimal("100.00"),
        balance: Decimal = Decimal("0"),
    ) -> Agent:
        agent = Agent(
            full_name=name,
            referral_code=f"TEST{next(counter):04d}",
            base_commission=base_commission,
            available_balance=balance,
            total_earnings=balance,
            parent_agent_id=parent.id if parent else None,
        )
        session.add(agent)
        await session.commit()
        return agent

    return factory


def submit_payload(**overrides) -> OrderSubmit:
    data = {
        "customer_name": "Priya Sharma",
        "customer_company": "Sharma Interiors",
        "customer_phone": "+91 98765 43210",
        "customer_email": "Priya@Example.com",
        "line1_text": "Priya Sharma",
        "line2_text": "Interior Designer",
        "sale_price": Decimal("999"),
        "shipping_address": {
            "flat": "12B",
            "street": "MG Road",
            "city": "Pune",
            "state": "MH",
            "pincode": "411001",
        },
    }
    data.update(overrides)
    return OrderSubmit(**data)


async def advance(service: OrderService, order_id, *targets, **kwargs):
    """Walk an order through ``targets`` in order; returns the final order."""
    order = None
    for target in targets:
        order = await service.transition_order(order_id, target, **kwargs)
    return order
