import uuid

from fastapi import APIRouter, Depends

from api.dependencies import get_ledger, to_http_exception
from services.errors import FulfillmentError
from services.ledger.service import PayoutLedger
from .schemas import BalanceRead, LiabilityRead, PayoutCreate, PayoutRead

router = APIRouter()


@router.post("", response_model=PayoutRead, status_code=201, summary="Pay out an agent's balance")
async def request_payout(dto: PayoutCreate, ledger: PayoutLedger = Depends(get_ledger)):
    try:
        return await ledger.payout(dto.agent_id, dto.amount, dto.payment_method, dto.admin_notes)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("/liabilities", response_model=list[LiabilityRead], summary="Unpaid agent balances")
async def get_commission_liabilities(ledger: PayoutLedger = Depends(get_ledger)):
    return await ledger.get_commission_liabilities()


@router.get("/balance/{agent_id}", response_model=BalanceRead, summary="Available balance of an agent")
async def get_balance(agent_id: uuid.UUID, ledger: PayoutLedger = Depends(get_ledger)):
    try:
        return BalanceRead(agent_id=agent_id, available_balance=await ledger.get_balance(agent_id))
    except FulfillmentError as e:
        raise to_http_exception(e)
