from functools import lru_cache

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_session
from api.models import OrderStatus
from config import get_settings
from services.agents.service import AgentService
from services.approval.service import ApprovalWorkflow
from services.commission.calculator import CommissionCalculator
from services.commission.hierarchy import AgentHierarchyResolver
from services.errors import (
    AlreadyProcessed,
    Conflict,
    DependencyFailure,
    FulfillmentError,
    InsufficientBalance,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from services.fulfillment.state_machine import OrderStateMachine
from services.ledger.service import PayoutLedger
from services.notifier import Notifier
from services.orders.service import OrderService
from services.provisioning import AccountProvisioner, HttpAccountProvisioner

_STATUS_CODES = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_400_BAD_REQUEST),
    (InsufficientBalance, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AlreadyProcessed, status.HTTP_409_CONFLICT),
    (Conflict, status.HTTP_409_CONFLICT),
    (DependencyFailure, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(e: FulfillmentError) -> HTTPException:
    for error_type, code in _STATUS_CODES:
        if isinstance(e, error_type):
            return HTTPException(status_code=code, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@lru_cache
def get_notifier() -> Notifier:
    env = get_settings().env
    return Notifier(env.NOTIFY_URL, timeout=env.REQUEST_TIMEOUT_SECONDS)


@lru_cache
def get_provisioner() -> AccountProvisioner:
    env = get_settings().env
    return HttpAccountProvisioner(
        env.PROVISIONING_URL or "", env.PROVISIONING_API_KEY, timeout=env.REQUEST_TIMEOUT_SECONDS
    )


@lru_cache
def get_state_machine() -> OrderStateMachine:
    return OrderStateMachine(allow_reject_after_approval=get_settings().env.ALLOW_REJECT_AFTER_APPROVAL)


def get_hierarchy(session: AsyncSession = Depends(get_session)) -> AgentHierarchyResolver:
    return AgentHierarchyResolver(session, max_depth=get_settings().env.MAX_HIERARCHY_DEPTH)


def get_ledger(session: AsyncSession = Depends(get_session)) -> PayoutLedger:
    return PayoutLedger(session, timeout=get_settings().env.REQUEST_TIMEOUT_SECONDS)


def get_approval_workflow(
    session: AsyncSession = Depends(get_session),
    state_machine: OrderStateMachine = Depends(get_state_machine),
    provisioner: AccountProvisioner = Depends(get_provisioner),
    notifier: Notifier = Depends(get_notifier),
) -> ApprovalWorkflow:
    env = get_settings().env
    return ApprovalWorkflow(
        session,
        state_machine,
        provisioner,
        notifier,
        timeout=env.REQUEST_TIMEOUT_SECONDS,
        profile_base_url=env.PUBLIC_PROFILE_BASE_URL,
    )


def get_order_service(
    session: AsyncSession = Depends(get_session),
    state_machine: OrderStateMachine = Depends(get_state_machine),
    hierarchy: AgentHierarchyResolver = Depends(get_hierarchy),
    ledger: PayoutLedger = Depends(get_ledger),
    approval: ApprovalWorkflow = Depends(get_approval_workflow),
    notifier: Notifier = Depends(get_notifier),
) -> OrderService:
    env = get_settings().env
    return OrderService(
        session,
        state_machine=state_machine,
        calculator=CommissionCalculator(env.OVERRIDE_COMMISSION_PERCENT),
        hierarchy=hierarchy,
        ledger=ledger,
        approval=approval,
        notifier=notifier,
        credit_status=OrderStatus(env.COMMISSION_CREDIT_STATUS),
        default_base_msp=env.DEFAULT_BASE_MSP,
    )


def get_agent_service(
    session: AsyncSession = Depends(get_session),
    hierarchy: AgentHierarchyResolver = Depends(get_hierarchy),
    notifier: Notifier = Depends(get_notifier),
) -> AgentService:
    return AgentService(session, hierarchy, notifier)
