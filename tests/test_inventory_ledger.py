"""InventoryLedger: listings and conditional stock updates."""

import uuid
from decimal import Decimal

import pytest

from agrimarket.core.exceptions import CropUnavailableError, InsufficientStockError, NotFoundError
from agrimarket.models.crop import Crop, CropStatus, CropType
from agrimarket.services.inventory_ledger import InventoryLedger


@pytest.fixture
def ledger(db):
    return InventoryLedger(db)


async def _set_status(db, crop_id, status):
    crop = await db.get(Crop, crop_id)
    crop.status = status
    await db.commit()


async def test_create_crop_is_available(make_crop, farmer):
    crop = await make_crop(quantity="25.5", price="40.00", crop_type="fruits")

    assert crop.farmer_id == farmer.user_id
    assert crop.status == CropStatus.AVAILABLE.value
    assert crop.crop_type == CropType.FRUITS.value
    assert crop.quantity == Decimal("25.5")
    assert crop.unit == "kg"
    assert crop.version == 1


async def test_reserve_decrements_stock(ledger, crop_id):
    crop = await ledger.reserve(crop_id, Decimal("4"))

    assert crop.quantity == Decimal("6")
    assert crop.status == CropStatus.AVAILABLE.value
    assert crop.version == 2


async def test_reserving_last_units_marks_crop_sold(ledger, crop_id):
    crop = await ledger.reserve(crop_id, Decimal("10"))

    assert crop.quantity == Decimal("0")
    assert crop.status == CropStatus.SOLD.value


async def test_reserve_more_than_available(ledger, crop_id):
    with pytest.raises(InsufficientStockError) as exc_info:
        await ledger.reserve(crop_id, Decimal("11"))

    assert Decimal(exc_info.value.details["available"]) == Decimal("10")
    crop = await ledger.get_crop(crop_id)
    assert crop.quantity == Decimal("10")
    assert crop.version == 1


async def test_reserve_unavailable_crop(db, ledger, crop_id):
    await _set_status(db, crop_id, CropStatus.CANCELLED.value)

    with pytest.raises(CropUnavailableError):
        await ledger.reserve(crop_id, Decimal("1"))


async def test_reserve_sold_out_crop(ledger, crop_id):
    await ledger.reserve(crop_id, Decimal("10"))

    with pytest.raises(CropUnavailableError):
        await ledger.reserve(crop_id, Decimal("1"))


async def test_reserve_requires_positive_quantity(ledger, crop_id):
    with pytest.raises(ValueError):
        await ledger.reserve(crop_id, Decimal("0"))


async def test_stock_changes_reject_sub_cent_quantities(ledger, crop_id):
    with pytest.raises(ValueError):
        await ledger.reserve(crop_id, Decimal("0.004"))
    with pytest.raises(ValueError):
        await ledger.restore(crop_id, Decimal("2.555"))

    crop = await ledger.get_crop(crop_id)
    assert crop.quantity == Decimal("10")
    assert crop.version == 1


async def test_reserve_unknown_crop(ledger):
    with pytest.raises(NotFoundError):
        await ledger.reserve(uuid.uuid4(), Decimal("1"))


async def test_restore_returns_stock_and_relists(ledger, crop_id):
    await ledger.reserve(crop_id, Decimal("10"))

    crop = await ledger.restore(crop_id, Decimal("10"))

    assert crop.quantity == Decimal("10")
    assert crop.status == CropStatus.AVAILABLE.value
    assert crop.version == 3


async def test_restore_unknown_crop(ledger):
    with pytest.raises(NotFoundError):
        await ledger.restore(uuid.uuid4(), Decimal("1"))


async def test_get_crop_unknown(ledger):
    with pytest.raises(NotFoundError):
        await ledger.get_crop(uuid.uuid4())


async def test_list_available_crops_filters(db, ledger, make_crop):
    tomatoes = await make_crop(name="Tomatoes", price="30.00")
    await make_crop(name="Mangoes", crop_type=CropType.FRUITS, price="120.00")
    withdrawn = await make_crop(name="Wheat", crop_type=CropType.GRAINS, price="25.00")
    await _set_status(db, withdrawn.id, CropStatus.CANCELLED.value)

    crops, total = await ledger.list_available_crops()
    assert total == 2
    assert {c.name for c in crops} == {"Tomatoes", "Mangoes"}

    crops, total = await ledger.list_available_crops(crop_type=CropType.VEGETABLES)
    assert total == 1
    assert crops[0].id == tomatoes.id

    crops, total = await ledger.list_available_crops(min_price=Decimal("50"))
    assert [c.name for c in crops] == ["Mangoes"]

    crops, total = await ledger.list_available_crops(max_price=Decimal("50"), limit=1)
    assert total == 1
    assert len(crops) == 1
