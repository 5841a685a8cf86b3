from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid

from agrimarket.schemas.base import BaseResponseSchema


class EscrowSnapshot(BaseResponseSchema):
    """Read-only view of an escrow record."""
    order_id: uuid.UUID
    transaction_id: Optional[str] = None
    status: str
    gross_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    held_amount: Decimal
    refund_amount: Optional[Decimal] = None
    penalty_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    refund_transaction_id: Optional[str] = None
    created_at: datetime
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
