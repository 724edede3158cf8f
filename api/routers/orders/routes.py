import uuid

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_order_service, to_http_exception
from api.models import OrderStatus
from services.errors import FulfillmentError
from services.orders.schemas import OrderDetailsUpdate, OrderSubmit, OrderTransition
from services.orders.service import OrderService
from .schemas import ApprovalRead, OrderRead, OrderTrackingRead, RejectPayload, SubmittedOrderRead

# Website and agent app
router = APIRouter()
# Back office
admin_router = APIRouter()


@router.post("", response_model=SubmittedOrderRead, status_code=201, summary="Submit a new order")
async def submit_order(dto: OrderSubmit, service: OrderService = Depends(get_order_service)):
    try:
        return await service.submit_order(dto)
    except FulfillmentError as e:
        raise to_http_exception(e)


@router.get("/track", response_model=OrderTrackingRead, summary="Track an order by number and email")
async def track_order(
    order_number: int = Query(..., ge=1),
    email: str = Query(...),
    service: OrderService = Depends(get_order_service),
):
    try:
        return await service.track_order(order_number, email)
    except FulfillmentError as e:
        raise to_http_exception(e)


@admin_router.get("", response_model=list[OrderRead], summary="List orders")
async def list_orders(
    status: OrderStatus | None = Query(None),
    agent_id: uuid.UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: OrderService = Depends(get_order_service),
):
    return await service.list_orders(status=status, agent_id=agent_id, limit=limit, offset=offset)


@admin_router.get("/{order_id}", response_model=OrderRead, summary="Get an order")
async def get_order(order_id: uuid.UUID, service: OrderService = Depends(get_order_service)):
    try:
        return await service.get_order(order_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@admin_router.post("/{order_id}/approve", response_model=ApprovalRead, summary="Approve a pending order")
async def approve_order(order_id: uuid.UUID, service: OrderService = Depends(get_order_service)):
    try:
        return await service.approve_order(order_id)
    except FulfillmentError as e:
        raise to_http_exception(e)


@admin_router.post("/{order_id}/reject", response_model=OrderRead, summary="Reject an order")
async def reject_order(
    order_id: uuid.UUID,
    dto: RejectPayload,
    service: OrderService = Depends(get_order_service),
):
    try:
        return await service.reject_order(order_id, dto.reason)
    except FulfillmentError as e:
        raise to_http_exception(e)


@admin_router.put("/{order_id}/status", response_model=OrderRead, summary="Move an order to the next status")
async def transition_order(
    order_id: uuid.UUID,
    dto: OrderTransition,
    service: OrderService = Depends(get_order_service),
):
    try:
        return await service.transition_order(
            order_id,
            dto.status,
            reason=dto.rejection_reason,
            tracking_number=dto.tracking_number,
            admin_notes=dto.admin_notes,
        )
    except FulfillmentError as e:
        raise to_http_exception(e)


@admin_router.patch("/{order_id}", response_model=OrderRead, summary="Update payment status, tracking or notes")
async def update_order_details(
    order_id: uuid.UUID,
    dto: OrderDetailsUpdate,
    service: OrderService = Depends(get_order_service),
):
    try:
        return await service.update_order_details(order_id, dto)
    except FulfillmentError as e:
        raise to_http_exception(e)
