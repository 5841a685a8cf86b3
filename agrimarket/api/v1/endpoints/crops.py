from typing import Annotated, Optional
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from agrimarket.api.deps import DB, require_role
from agrimarket.core.actor import Actor, ActorRole
from agrimarket.models.crop import CropType
from agrimarket.schemas.crop import CropCreate, CropResponse, CropListResponse
from agrimarket.services.inventory_ledger import InventoryLedger


router = APIRouter(tags=["Crops"])


@router.post(
    "",
    response_model=CropResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a crop listing",
)
async def create_crop(
    data: CropCreate,
    db: DB,
    farmer: Annotated[Actor, Depends(require_role(ActorRole.FARMER))],
):
    """
    List a crop for sale.
    Requires: FARMER role
    """
    ledger = InventoryLedger(db)
    crop = await ledger.create_crop(farmer.user_id, data)
    return CropResponse.model_validate(crop)


@router.get(
    "",
    response_model=CropListResponse,
    summary="List available crops",
)
async def list_crops(
    db: DB,
    crop_type: Optional[CropType] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """Get AVAILABLE crop listings with optional type and price filters."""
    ledger = InventoryLedger(db)
    crops, total = await ledger.list_available_crops(
        crop_type=crop_type,
        min_price=min_price,
        max_price=max_price,
        skip=skip,
        limit=limit,
    )
    return CropListResponse(
        items=[CropResponse.model_validate(c) for c in crops],
        total=total,
    )


@router.get(
    "/{crop_id}",
    response_model=CropResponse,
    summary="Get a crop listing",
)
async def get_crop(crop_id: uuid.UUID, db: DB):
    ledger = InventoryLedger(db)
    crop = await ledger.get_crop(crop_id)
    return CropResponse.model_validate(crop)
