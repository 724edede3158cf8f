import uuid

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_agent_service, get_ledger, to_http_exception
from api.models import AgentApplicationStatus, AgentStatus
from api.routers.payouts.schemas import PayoutRead
from services.agents.schemas import (
    AgentApplicationCreate,
    AgentApplicationReject,
    AgentCreate,
    AgentMspSet,
    AgentParentUpdate,
    AgentStatusUpdate,
)
from services.agents.service import AgentService
from services.errors import FulfillmentError
from services.ledger.service import PayoutLedger
from .schemas import AgentApplicationRead, AgentApplicationSubmitted, AgentMspRead, AgentRead, SubAgentRead

router = APIRouter()
public_router = APIRouter()


@public_router.post(
    "/apply", response_model=AgentApplicationSubmitted, status_code=201, summary="Apply to become an agent"
)
async def apply_as_agent(dto: AgentApplicationCreate, service: AgentService = Depends(get_agent_service)):
    try:
        application = await service.apply_as_agent(dto)
    except FulfillmentError as e:
        raise to_http_exception(e)
    return AgentApplicationSubmitted(
        application_id=application.id,
        message="Application submitted successfully! Our team will review and contact you within 48 hours.",
    )


@router.post("", response_model=AgentRead, status_code=201, summary="Register an agent")
async def create_agent(dto: AgentCreate, service: AgentService = Depends(get_agent_service)):
    try:
        return await service.create_agent(dto)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("", response_model=list[AgentRead], summary="List agents")
async def list_agents(
    status: AgentStatus | None = Query(None),
    service: AgentService = Depends(get_agent_service),
):
    return await service.list_agents(status)


@router.get("/applications", response_model=list[AgentApplicationRead], summary="List agent applications")
async def list_applications(
    status: AgentApplicationStatus | None = Query(None),
    service: AgentService = Depends(get_agent_service),
):
    return await service.list_applications(status)


@router.post(
    "/applications/{application_id}/approve",
    response_model=AgentRead,
    status_code=201,
    summary="Approve an application and create the agent",
)
async def approve_application(application_id: uuid.UUID, service: AgentService = Depends(get_agent_service)):
    try:
        return await service.approve_application(application_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.post(
    "/applications/{application_id}/reject", response_model=AgentApplicationRead, summary="Reject an application"
)
async def reject_application(
    application_id: uuid.UUID,
    dto: AgentApplicationReject,
    service: AgentService = Depends(get_agent_service),
):
    try:
        return await service.reject_application(application_id, dto.reason)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("/{agent_id}", response_model=AgentRead, summary="Get an agent")
async def get_agent(agent_id: uuid.UUID, service: AgentService = Depends(get_agent_service)):
    try:
        return await service.get_agent(agent_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.patch("/{agent_id}/status", response_model=AgentRead, summary="Activate or deactivate an agent")
async def update_agent_status(
    agent_id: uuid.UUID,
    dto: AgentStatusUpdate,
    service: AgentService = Depends(get_agent_service),
):
    try:
        return await service.update_agent_status(agent_id, dto.status)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.put("/{agent_id}/parent", response_model=AgentRead, summary="Move an agent under another recruiter")
async def reassign_parent(
    agent_id: uuid.UUID,
    dto: AgentParentUpdate,
    service: AgentService = Depends(get_agent_service),
):
    try:
        return await service.reassign_parent(agent_id, dto.parent_agent_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("/{agent_id}/sub-agents", response_model=list[SubAgentRead], summary="Agents recruited by this agent")
async def get_sub_agents(agent_id: uuid.UUID, service: AgentService = Depends(get_agent_service)):
    try:
        return await service.get_sub_agents(agent_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.put("/{agent_id}/msp", response_model=AgentMspRead, summary="Set an agent specific MSP for a design")
async def set_agent_msp(
    agent_id: uuid.UUID,
    dto: AgentMspSet,
    service: AgentService = Depends(get_agent_service),
):
    try:
        return await service.set_agent_msp(agent_id, dto)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("/{agent_id}/payouts", response_model=list[PayoutRead], summary="Payout history of an agent")
async def get_payout_history(agent_id: uuid.UUID, ledger: PayoutLedger = Depends(get_ledger)):
    try:
        return await ledger.get_payout_history(agent_id)
    except FulfillmentError as e:
        raise to_http_exception(e)
