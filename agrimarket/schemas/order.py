from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid

from agrimarket.core.enum_utils import create_uppercase_validator, VALID_ORDER_STATUSES
from agrimarket.schemas.base import BaseResponseSchema, BaseCreateSchema
from agrimarket.schemas.crop import CropResponse
from agrimarket.schemas.escrow import EscrowSnapshot


# ==================== REQUEST SCHEMAS ====================

class OrderCreate(BaseCreateSchema):
    """Order creation schema."""
    crop_id: uuid.UUID
    quantity: Decimal = Field(..., gt=0, decimal_places=2)
    pickup_date: Optional[datetime] = None


class OrderStatusUpdate(BaseModel):
    """
    Status change request.

    Kept as a plain string so that unknown values reach the workflow and are
    rejected there as an invalid status rather than as a validation error.
    """
    status: str = Field(..., min_length=1)
    notes: Optional[str] = None

    _normalize_status = create_uppercase_validator('status', VALID_ORDER_STATUSES)


class OrderCancel(BaseModel):
    """Cancellation request."""
    reason: str = Field(..., min_length=1, max_length=100)


# ==================== RESPONSE SCHEMAS ====================

class StatusHistoryResponse(BaseResponseSchema):
    """Status history response schema."""
    id: uuid.UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseResponseSchema):
    """Order response schema."""
    id: uuid.UUID
    crop_id: uuid.UUID
    buyer_id: uuid.UUID
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    status: str
    payment_id: str
    pickup_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderDetailResponse(BaseModel):
    """Order with its crop and escrow state."""
    order: OrderResponse
    crop: Optional[CropResponse] = None
    escrow: EscrowSnapshot
    status_history: List[StatusHistoryResponse] = []


class OrderListResponse(BaseModel):
    """Paginated order list."""
    items: List[OrderResponse]
    total: int


class CancellationResponse(BaseModel):
    """Result of a cancellation."""
    message: str = "Order cancelled successfully"
    order: OrderResponse
    refund_amount: Decimal
    penalty_amount: Decimal
    refund_transaction_id: Optional[str] = None
