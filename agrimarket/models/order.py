import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrimarket.core.enum_utils import is_status
from agrimarket.database import Base
from agrimarket.db_types import UUIDType, MoneyType, QuantityType

if TYPE_CHECKING:
    from agrimarket.models.crop import Crop


class OrderStatus(str, Enum):
    """Order status enumeration.

    PENDING -> IN_TRANSIT -> DELIVERED, or PENDING -> CANCELED.
    """
    PENDING = "PENDING"               # Paid into escrow, awaiting dispatch
    IN_TRANSIT = "IN_TRANSIT"         # Dispatched by the farmer
    DELIVERED = "DELIVERED"           # Confirmed by the buyer, escrow released
    CANCELED = "CANCELED"             # Cancelled before dispatch, escrow refunded
    PAYMENT_RELEASED = "PAYMENT_RELEASED"  # Legacy terminal value, never assigned


TERMINAL_ORDER_STATUSES = frozenset({
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELED.value,
    OrderStatus.PAYMENT_RELEASED.value,
})


class Order(Base):
    """
    A buyer's order against a crop listing.
    Quantity, amounts and payment reference are fixed at creation.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_buyer_created', 'buyer_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    crop_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("crops.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        index=True
    )

    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Crop price at the time of ordering"
    )
    total_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="quantity x unit_price, never recomputed"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        index=True,
        comment="PENDING, IN_TRANSIT, DELIVERED, CANCELED, PAYMENT_RELEASED"
    )

    payment_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Gateway transaction held in escrow"
    )

    pickup_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    crop: Mapped["Crop"] = relationship("Crop", back_populates="orders")
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at"
    )

    @property
    def is_pending(self) -> bool:
        return is_status(self.status, OrderStatus.PENDING)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def __repr__(self) -> str:
        return f"<Order(id='{self.id}', status='{self.status}')>"


class OrderStatusHistory(Base):
    """Order status change history."""
    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory(from='{self.from_status}', to='{self.to_status}')>"
