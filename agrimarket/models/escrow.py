"""Escrow ledger model.

One record per order. A record leaves HELD exactly once, to RELEASED or
REFUNDED, and its amounts are frozen from then on.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from agrimarket.core.enum_utils import is_status
from agrimarket.database import Base
from agrimarket.db_types import UUIDType, MoneyType


class EscrowStatus(str, Enum):
    """Escrow record status."""
    HELD = "HELD"             # Funds captured, awaiting delivery confirmation
    RELEASED = "RELEASED"     # Paid out to the farmer
    REFUNDED = "REFUNDED"     # Returned to the buyer


class EscrowRecord(Base):
    """Funds held on behalf of a single order."""
    __tablename__ = "escrow_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        unique=True,
        nullable=False,
        index=True
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Gateway authorization backing the held funds"
    )

    # Amounts
    gross_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    held_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="gross_amount - commission_amount"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="HELD",
        nullable=False,
        index=True,
        comment="HELD, RELEASED, REFUNDED"
    )

    # Refund details
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    penalty_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    refund_transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_held(self) -> bool:
        return is_status(self.status, EscrowStatus.HELD)

    def __repr__(self) -> str:
        return f"<EscrowRecord(order_id='{self.order_id}', status='{self.status}', held={self.held_amount})>"
