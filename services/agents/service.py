import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import (
    Agent,
    AgentApplication,
    AgentApplicationStatus,
    AgentMsp,
    AgentStatus,
    CardDesign,
    CommissionEntry,
    CommissionKind,
    Order,
)
from services.agents.schemas import AgentApplicationCreate, AgentCreate, AgentMspSet
from services.commission.hierarchy import AgentHierarchyResolver
from services.errors import AlreadyProcessed, Conflict, NotFound, ValidationError
from services.notifier import Notifier
from utils.clock import utcnow
from utils.codes import CodeGenerator
from utils.contact import EMAIL_RE, PHONE_RE, last_ten_digits
from utils.money import to_money

CODE_ATTEMPTS = 10


@dataclass(frozen=True)
class SubAgentSummary:
    agent_id: uuid.UUID
    full_name: str
    referral_code: str
    status: AgentStatus
    total_sales: int
    # Override earned by the parent from this sub-agent's orders
    override_earned: Decimal


class AgentService:
    def __init__(self, session: AsyncSession, hierarchy: AgentHierarchyResolver, notifier: Notifier | None = None):
        self.session = session
        self.hierarchy = hierarchy
        self.notifier = notifier
        self.codes = CodeGenerator()

    async def create_agent(self, dto: AgentCreate) -> Agent:
        parent_id = dto.parent_agent_id
        if dto.parent_referral_code:
            parent_id = await self.session.scalar(
                select(Agent.id).where(Agent.referral_code == dto.parent_referral_code.strip().upper())
            )
            if parent_id is None:
                raise NotFound("Invalid referral code")
        if parent_id is not None:
            await self.hierarchy.assert_can_attach(None, parent_id)

        agent = Agent(
            full_name=dto.full_name.strip(),
            email=dto.email.strip().lower() if dto.email else None,
            phone=dto.phone,
            city=dto.city,
            base_commission=to_money(dto.base_commission),
            referral_code=await self._free_referral_code(dto.full_name),
            parent_agent_id=parent_id,
        )
        self.session.add(agent)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise Conflict("Referral code was taken concurrently, please retry") from e
        await self.session.refresh(agent)
        logging.info(f"Agent {agent.id} ({agent.referral_code}) created, parent {parent_id}")
        return agent

    async def _free_referral_code(self, name: str) -> str:
        for _ in range(CODE_ATTEMPTS):
            code = self.codes.referral_code(name)
            taken = await self.session.scalar(select(Agent.id).where(Agent.referral_code == code))
            if not taken:
                return code
        raise Conflict(f"Could not find a free referral code for {name!r}")

    async def get_agent(self, agent_id: uuid.UUID) -> Agent:
        agent = await self.session.get(Agent, agent_id, populate_existing=True)
        if not agent:
            raise NotFound("Agent not found")
        return agent

    async def list_agents(self, status: AgentStatus | None = None) -> list[Agent]:
        query = select(Agent).order_by(Agent.created_at.desc())
        if status:
            query = query.where(Agent.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_agent_status(self, agent_id: uuid.UUID, status: AgentStatus) -> Agent:
        agent = await self.get_agent(agent_id)
        agent.status = status
        agent.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(agent)
        logging.info(f"Agent {agent_id} is now {status.value}")
        return agent

    async def reassign_parent(self, agent_id: uuid.UUID, parent_id: uuid.UUID | None) -> Agent:
        """Move an agent under another recruiter. Orders already placed keep their frozen override."""
        agent = await self.get_agent(agent_id)
        try:
            if parent_id is not None:
                # both rows in id order, so two opposite reassignments queue instead of deadlocking
                await self.session.execute(
                    select(Agent.id)
                    .where(Agent.id.in_([agent_id, parent_id]))
                    .order_by(Agent.id)
                    .with_for_update()
                )
                await self.hierarchy.assert_can_attach(agent_id, parent_id, lock=True)
            await self.session.execute(
                update(Agent)
                .where(Agent.id == agent_id)
                .values(parent_agent_id=parent_id, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(agent)
        logging.info(f"Agent {agent_id} reassigned to parent {parent_id}")
        return agent

    async def get_sub_agents(self, agent_id: uuid.UUID) -> list[SubAgentSummary]:
        await self.get_agent(agent_id)

        earned = (
            select(Order.agent_id, func.sum(CommissionEntry.commission).label("override_earned"))
            .join(Order, Order.id == CommissionEntry.order_id)
            .where(CommissionEntry.agent_id == agent_id, CommissionEntry.kind == CommissionKind.OVERRIDE)
            .group_by(Order.agent_id)
            .subquery()
        )
        query = (
            select(Agent, earned.c.override_earned)
            .outerjoin(earned, earned.c.agent_id == Agent.id)
            .where(Agent.parent_agent_id == agent_id)
            .order_by(Agent.created_at)
        )
        result = await self.session.execute(query)
        return [
            SubAgentSummary(
                agent_id=sub.id,
                full_name=sub.full_name,
                referral_code=sub.referral_code,
                status=sub.status,
                total_sales=sub.total_sales,
                override_earned=to_money(override_earned or 0),
            )
            for sub, override_earned in result.all()
        ]

    async def set_agent_msp(self, agent_id: uuid.UUID, dto: AgentMspSet) -> AgentMsp:
        await self.get_agent(agent_id)
        if not await self.session.get(CardDesign, dto.card_design_id):
            raise NotFound("Card design not found")
        if dto.msp_amount <= 0:
            raise ValidationError("MSP must be greater than zero")

        msp = await self.session.scalar(
            select(AgentMsp).where(AgentMsp.agent_id == agent_id, AgentMsp.card_design_id == dto.card_design_id)
        )
        if msp:
            msp.msp_amount = to_money(dto.msp_amount)
        else:
            msp = AgentMsp(agent_id=agent_id, card_design_id=dto.card_design_id, msp_amount=to_money(dto.msp_amount))
            self.session.add(msp)
        await self.session.commit()
        await self.session.refresh(msp)
        return msp

    # ========================================================================
    # Applications
    # ========================================================================

    async def apply_as_agent(self, dto: AgentApplicationCreate) -> AgentApplication:
        """Public sign-up. Nothing is created besides a pending application for an admin to review."""
        full_name, city = dto.full_name.strip(), dto.city.strip()
        if not full_name or not city:
            raise ValidationError("Full name, phone, email and city are required")
        phone = last_ten_digits(dto.phone)
        if not PHONE_RE.match(phone):
            raise ValidationError("Please enter a valid 10-digit mobile number")
        email = dto.email.strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email address")

        previous = await self.session.scalar(
            select(AgentApplication)
            .where(or_(AgentApplication.email == email, AgentApplication.phone == phone))
            .order_by(AgentApplication.created_at.desc())
            .limit(1)
        )
        if previous:
            if previous.status == AgentApplicationStatus.PENDING:
                raise ValidationError("Your application is already under review.")
            raise ValidationError("You have already applied. Please contact support.")
        if await self.session.scalar(select(Agent.id).where(Agent.phone == phone).limit(1)):
            raise ValidationError("An account with this phone number already exists. Please login.")
        if await self.session.scalar(select(Agent.id).where(Agent.email == email).limit(1)):
            raise ValidationError("An account with this email already exists. Please login.")

        referral_code = (dto.referral_code or "").strip().upper() or None
        parent_id = None
        if referral_code:
            parent_id = await self.session.scalar(select(Agent.id).where(Agent.referral_code == referral_code))
            if parent_id is None:
                logging.warning(f"Application from {email} used unknown referral code {referral_code}")

        application = AgentApplication(
            full_name=full_name,
            email=email,
            phone=phone,
            city=city,
            experience=dto.experience.strip() if dto.experience else None,
            referral_code_used=referral_code,
            parent_agent_id=parent_id,
        )
        self.session.add(application)
        await self.session.commit()
        await self.session.refresh(application)
        logging.info(f"Agent application {application.id} received from {email}, parent {parent_id}")

        if self.notifier:
            self.notifier.dispatch("agent_application_received", email, {"full_name": full_name})
        return application

    async def list_applications(self, status: AgentApplicationStatus | None = None) -> list[AgentApplication]:
        query = select(AgentApplication).order_by(AgentApplication.created_at.desc())
        if status:
            query = query.where(AgentApplication.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_application(self, application_id: uuid.UUID) -> AgentApplication:
        application = await self.session.get(AgentApplication, application_id, populate_existing=True)
        if not application:
            raise NotFound("Application not found")
        return application

    async def approve_application(self, application_id: uuid.UUID) -> Agent:
        """Create the agent and close the application in one transaction."""
        application = await self.get_application(application_id)
        if application.status != AgentApplicationStatus.PENDING:
            raise AlreadyProcessed(f"Application already {application.status.value}")

        try:
            if application.parent_agent_id is not None:
                await self.hierarchy.assert_can_attach(None, application.parent_agent_id)
            agent = Agent(
                full_name=application.full_name,
                email=application.email,
                phone=application.phone,
                city=application.city,
                referral_code=await self._free_referral_code(application.full_name),
                parent_agent_id=application.parent_agent_id,
            )
            self.session.add(agent)
            await self.session.flush()
            await self._close_application(application, AgentApplicationStatus.APPROVED, agent_id=agent.id)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise Conflict("Referral code was taken concurrently, please retry") from e
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(agent)
        logging.info(f"Application {application_id} approved, agent {agent.id} ({agent.referral_code})")
        if self.notifier:
            self.notifier.dispatch(
                "agent_application_approved",
                agent.email,
                {"full_name": agent.full_name, "referral_code": agent.referral_code},
            )
        return agent

    async def reject_application(self, application_id: uuid.UUID, reason: str | None = None) -> AgentApplication:
        application = await self.get_application(application_id)
        if application.status != AgentApplicationStatus.PENDING:
            raise AlreadyProcessed(f"Application already {application.status.value}")
        try:
            await self._close_application(
                application,
                AgentApplicationStatus.REJECTED,
                rejection_reason=reason.strip() if reason and reason.strip() else None,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logging.info(f"Application {application_id} rejected. Reason: {reason}")
        return await self.get_application(application_id)

    async def _close_application(
        self, application: AgentApplication, status: AgentApplicationStatus, **values
    ) -> None:
        # only one reviewer can move it out of pending
        result = await self.session.execute(
            update(AgentApplication)
            .where(AgentApplication.id == application.id, AgentApplication.status == AgentApplicationStatus.PENDING)
            .values(status=status, reviewed_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyProcessed("Application was already reviewed")
