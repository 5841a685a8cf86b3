"""
Shared fixtures.

Every test gets its own file-backed SQLite database so that separate sessions
(and therefore concurrent workflows) see each other's committed writes.
"""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from agrimarket.core.actor import Actor, ActorRole
from agrimarket.database import create_engine, create_session_factory, get_db, init_db
from agrimarket.main import app
from agrimarket.models.crop import CropType
from agrimarket.schemas.crop import CropCreate
from agrimarket.services.inventory_ledger import InventoryLedger
from agrimarket.services.order_workflow import OrderWorkflow
from agrimarket.services.payment_gateway import MockPaymentGateway, get_payment_gateway


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return MockPaymentGateway()


@pytest.fixture
def workflow(db, gateway):
    return OrderWorkflow(db, gateway)


# ==================== ACTORS ====================

@pytest.fixture
def farmer():
    return Actor(user_id=uuid.uuid4(), role=ActorRole.FARMER)


@pytest.fixture
def other_farmer():
    return Actor(user_id=uuid.uuid4(), role=ActorRole.FARMER)


@pytest.fixture
def buyer():
    return Actor(user_id=uuid.uuid4(), role=ActorRole.BUYER)


@pytest.fixture
def other_buyer():
    return Actor(user_id=uuid.uuid4(), role=ActorRole.BUYER)


@pytest.fixture
def admin():
    return Actor(user_id=uuid.uuid4(), role=ActorRole.ADMIN)


# ==================== DATA ====================

@pytest.fixture
def make_crop(db, farmer):
    """Factory listing a crop for `farmer` (10 kg @ 100.00 unless overridden)."""
    async def _make_crop(quantity="10", price="100.00", owner=None, **kwargs):
        data = CropCreate(
            name=kwargs.pop("name", "Tomatoes"),
            crop_type=kwargs.pop("crop_type", CropType.VEGETABLES),
            quantity=Decimal(quantity),
            price=Decimal(price),
            **kwargs,
        )
        return await InventoryLedger(db).create_crop((owner or farmer).user_id, data)

    return _make_crop


@pytest_asyncio.fixture
async def crop_id(make_crop):
    crop = await make_crop()
    return crop.id


# ==================== API ====================

@pytest.fixture
def auth_headers():
    def _auth_headers(actor: Actor) -> dict:
        return {"X-User-Id": str(actor.user_id), "X-User-Role": actor.role.value}

    return _auth_headers


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
