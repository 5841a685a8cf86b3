from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
import uuid

from agrimarket.core.enum_utils import create_uppercase_validator, VALID_CROP_TYPES
from agrimarket.models.crop import CropType
from agrimarket.schemas.base import BaseResponseSchema, BaseCreateSchema


class CropCreate(BaseCreateSchema):
    """Crop listing creation schema."""
    name: str = Field(..., min_length=1, max_length=200)
    crop_type: CropType
    quantity: Decimal = Field(..., gt=0, decimal_places=2)
    unit: str = Field("kg", max_length=20)
    price: Decimal = Field(..., gt=0, decimal_places=2)
    description: Optional[str] = None
    harvest_date: Optional[date] = None

    _normalize_crop_type = create_uppercase_validator('crop_type', VALID_CROP_TYPES)


class CropResponse(BaseResponseSchema):
    """Crop listing response schema."""
    id: uuid.UUID
    farmer_id: uuid.UUID
    name: str
    crop_type: str
    quantity: Decimal
    unit: str
    price: Decimal
    status: str
    version: int
    description: Optional[str] = None
    harvest_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class CropListResponse(BaseModel):
    """Available crop listings."""
    items: List[CropResponse]
    total: int
