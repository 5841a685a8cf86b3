"""Inventory ledger for crop stock.

Stock changes are single conditional UPDATE statements, never read-then-write,
so two concurrent reservations on the same crop cannot both consume the same
units. Stock methods flush but never commit; the caller owns the
transaction.
"""
from typing import Optional, List, Tuple
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, update, func, case, and_
from sqlalchemy.ext.asyncio import AsyncSession

from agrimarket.core.exceptions import NotFoundError, CropUnavailableError, InsufficientStockError
from agrimarket.core.enum_utils import get_enum_value
from agrimarket.core.money import round2, to_decimal
from agrimarket.models.crop import Crop, CropStatus, CropType
from agrimarket.schemas.crop import CropCreate

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Service for crop listings and their available stock."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== LISTING METHODS ====================

    async def create_crop(self, farmer_id: uuid.UUID, data: CropCreate) -> Crop:
        """Create and commit a new crop listing in AVAILABLE status."""
        crop = Crop(
            farmer_id=farmer_id,
            name=data.name,
            crop_type=get_enum_value(data.crop_type),
            quantity=data.quantity,
            unit=data.unit,
            price=data.price,
            status=CropStatus.AVAILABLE.value,
            description=data.description,
            harvest_date=data.harvest_date,
        )
        self.db.add(crop)
        await self.db.commit()
        logger.info(f"Crop {crop.id} listed by farmer {farmer_id}: {crop.quantity} {crop.unit} @ {crop.price}")
        return crop

    async def get_crop(self, crop_id: uuid.UUID) -> Crop:
        """Get crop by ID, always reflecting the latest committed stock."""
        stmt = (
            select(Crop)
            .where(Crop.id == crop_id)
            .execution_options(populate_existing=True)
        )
        crop = (await self.db.execute(stmt)).scalar_one_or_none()
        if crop is None:
            raise NotFoundError("Crop not found", {"crop_id": str(crop_id)})
        return crop

    async def list_available_crops(
        self,
        crop_type: Optional[CropType] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Crop], int]:
        """Get paginated AVAILABLE crops, newest first."""
        filters = [Crop.status == CropStatus.AVAILABLE.value]
        if crop_type:
            filters.append(Crop.crop_type == get_enum_value(crop_type))
        if min_price is not None:
            filters.append(Crop.price >= min_price)
        if max_price is not None:
            filters.append(Crop.price <= max_price)

        count_stmt = select(func.count(Crop.id)).where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Crop)
            .where(and_(*filters))
            .order_by(Crop.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        crops = (await self.db.execute(stmt)).scalars().all()
        return list(crops), total

    # ==================== STOCK METHODS ====================

    async def reserve(self, crop_id: uuid.UUID, quantity: Decimal) -> Crop:
        """
        Atomically take `quantity` units out of a crop's available stock.

        The crop becomes SOLD when the reservation consumes the last unit.

        Raises:
            NotFoundError: crop does not exist
            CropUnavailableError: crop is not AVAILABLE
            InsufficientStockError: fewer than `quantity` units available
        """
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValueError("Reservation quantity must be positive")
        if quantity != round2(quantity):
            raise ValueError("Reservation quantity supports at most 2 decimal places")

        # Compare-and-decrement; SET expressions see the pre-update row
        stmt = (
            update(Crop)
            .where(
                Crop.id == crop_id,
                Crop.status == CropStatus.AVAILABLE.value,
                Crop.quantity >= quantity,
            )
            .values(
                quantity=Crop.quantity - quantity,
                status=case(
                    (Crop.quantity == quantity, CropStatus.SOLD.value),
                    else_=CropStatus.AVAILABLE.value,
                ),
                version=Crop.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount == 0:
            crop = await self.get_crop(crop_id)
            if not crop.is_available:
                raise CropUnavailableError(
                    "Crop is not available for purchase",
                    {"crop_id": str(crop_id), "status": crop.status}
                )
            raise InsufficientStockError(
                f"Insufficient stock. Available: {crop.quantity}, Requested: {quantity}",
                {"crop_id": str(crop_id), "available": str(crop.quantity), "requested": str(quantity)}
            )

        crop = await self.get_crop(crop_id)
        logger.info(f"Reserved {quantity} of crop {crop_id}; {crop.quantity} left ({crop.status})")
        return crop

    async def restore(self, crop_id: uuid.UUID, quantity: Decimal) -> Crop:
        """
        Atomically return `quantity` units to a crop's stock.

        A restored crop is always re-listable, so status goes back to AVAILABLE.
        """
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValueError("Restore quantity must be positive")
        if quantity != round2(quantity):
            raise ValueError("Restore quantity supports at most 2 decimal places")

        stmt = (
            update(Crop)
            .where(Crop.id == crop_id)
            .values(
                quantity=Crop.quantity + quantity,
                status=CropStatus.AVAILABLE.value,
                version=Crop.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError("Crop not found", {"crop_id": str(crop_id)})

        crop = await self.get_crop(crop_id)
        logger.info(f"Restored {quantity} to crop {crop_id}; {crop.quantity} available")
        return crop
