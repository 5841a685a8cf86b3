"""Crop listing model.

Only the stock-related columns (quantity, status, version) are mutated after
creation, and only through InventoryLedger.
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Integer, Text, Date, DateTime, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrimarket.core.enum_utils import is_status
from agrimarket.database import Base
from agrimarket.db_types import UUIDType, MoneyType, QuantityType

if TYPE_CHECKING:
    from agrimarket.models.order import Order


class CropStatus(str, Enum):
    """Crop availability status."""
    AVAILABLE = "AVAILABLE"   # Listed and purchasable
    PENDING = "PENDING"       # Listing under review
    SOLD = "SOLD"             # Stock fully reserved by orders
    CANCELLED = "CANCELLED"   # Withdrawn by the farmer


class CropType(str, Enum):
    """Crop category."""
    VEGETABLES = "VEGETABLES"
    FRUITS = "FRUITS"
    GRAINS = "GRAINS"
    PULSES = "PULSES"
    OTHERS = "OTHERS"


class Crop(Base):
    """A farmer's crop listing and its available stock."""
    __tablename__ = "crops"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_crop_quantity_non_negative"),
        Index('ix_crop_status_type', 'status', 'crop_type'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    farmer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    crop_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="VEGETABLES, FRUITS, GRAINS, PULSES, OTHERS"
    )

    # Stock
    quantity: Mapped[Decimal] = mapped_column(
        QuantityType,
        nullable=False,
        comment="Available stock in `unit`"
    )
    unit: Mapped[str] = mapped_column(String(20), default="kg", nullable=False)
    price: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Price per unit"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="AVAILABLE",
        nullable=False,
        index=True,
        comment="AVAILABLE, PENDING, SOLD, CANCELLED"
    )
    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Bumped on every stock mutation"
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    harvest_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="crop")

    @property
    def is_available(self) -> bool:
        return is_status(self.status, CropStatus.AVAILABLE)

    def __repr__(self) -> str:
        return f"<Crop(name='{self.name}', quantity={self.quantity}, status='{self.status}')>"
