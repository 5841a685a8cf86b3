from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from agrimarket.api.deps import CurrentActor, Workflow
from agrimarket.core.enum_utils import normalize_to_uppercase, to_enum, VALID_ORDER_STATUSES
from agrimarket.models.order import OrderStatus
from agrimarket.schemas.crop import CropResponse
from agrimarket.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderCancel,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    StatusHistoryResponse,
    CancellationResponse,
)
from agrimarket.services.order_workflow import OrderPlacement


router = APIRouter(tags=["Orders"])


def _build_order_detail_response(placement: OrderPlacement) -> OrderDetailResponse:
    """Build OrderDetailResponse from an order and its escrow snapshot."""
    order = placement.order
    return OrderDetailResponse(
        order=OrderResponse.model_validate(order),
        crop=CropResponse.model_validate(order.crop) if order.crop else None,
        escrow=placement.escrow,
        status_history=[StatusHistoryResponse.model_validate(h) for h in order.status_history],
    )


@router.post(
    "",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
)
async def create_order(
    data: OrderCreate,
    workflow: Workflow,
    actor: CurrentActor,
):
    """
    Place an order on a crop. Payment is authorized and held in escrow.
    Requires: BUYER role
    """
    try:
        placement = await workflow.create_order(
            crop_id=data.crop_id,
            actor=actor,
            quantity=data.quantity,
            pickup_date=data.pickup_date,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return _build_order_detail_response(placement)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
)
async def list_orders(
    workflow: Workflow,
    actor: CurrentActor,
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """
    List orders visible to the caller.
    Buyers see their orders, farmers the orders on their crops, admins all.
    """
    order_status = None
    if status_filter:
        order_status = to_enum(normalize_to_uppercase(status_filter, VALID_ORDER_STATUSES), OrderStatus)
        if order_status is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status: {status_filter}"
            )

    orders, total = await workflow.list_orders(actor, status=order_status, skip=skip, limit=limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order details",
)
async def get_order(
    order_id: uuid.UUID,
    workflow: Workflow,
    actor: CurrentActor,
):
    """Get an order with its escrow status. Only the buyer, the farmer or an admin may view it."""
    placement = await workflow.get_order(order_id, actor)
    return _build_order_detail_response(placement)


@router.put(
    "/{order_id}/status",
    response_model=OrderDetailResponse,
    summary="Advance order status",
)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    workflow: Workflow,
    actor: CurrentActor,
):
    """
    Update order status.
    - in-transit: crop's farmer only, from pending
    - delivered: buyer only, from in-transit; releases escrow to the farmer
    """
    placement = await workflow.advance_status(
        order_id,
        data.status,
        actor,
        notes=data.notes,
    )
    return _build_order_detail_response(placement)


@router.post(
    "/{order_id}/cancel",
    response_model=CancellationResponse,
    summary="Cancel a pending order",
)
async def cancel_order(
    order_id: uuid.UUID,
    data: OrderCancel,
    workflow: Workflow,
    actor: CurrentActor,
):
    """
    Cancel a pending order. Escrow is refunded (less a 5% penalty for
    buyer_cancellation) and the crop's stock is restored.
    """
    result = await workflow.cancel_order(order_id, data.reason, actor)
    return CancellationResponse(
        order=OrderResponse.model_validate(result.order),
        refund_amount=result.refund_amount,
        penalty_amount=result.penalty_amount,
        refund_transaction_id=result.refund_transaction_id,
    )
