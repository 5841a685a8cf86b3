"""
API tests: request/response shapes and error-to-status mapping.

Money and quantities are serialized as strings; compare them as Decimal.
"""

import uuid
from decimal import Decimal

import pytest

ORDERS_URL = "/api/v1/orders"
CROPS_URL = "/api/v1/crops"


@pytest.fixture
def list_crop(client, auth_headers, farmer):
    async def _list_crop(quantity="10", price="100.00"):
        response = await client.post(
            CROPS_URL,
            json={"name": "Onions", "crop_type": "vegetables", "quantity": quantity, "price": price},
            headers=auth_headers(farmer),
        )
        assert response.status_code == 201, f"Create crop failed: {response.text}"
        return response.json()

    return _list_crop


@pytest.fixture
def place_order(client, auth_headers, buyer):
    async def _place_order(crop_id, quantity="4", actor=None):
        return await client.post(
            ORDERS_URL,
            json={"crop_id": crop_id, "quantity": quantity},
            headers=auth_headers(actor or buyer),
        )

    return _place_order


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200, f"Health check failed: {response.text}"
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"] == "connected"


async def test_crop_listing(client, list_crop, farmer):
    crop = await list_crop()

    assert crop["farmer_id"] == str(farmer.user_id)
    assert crop["crop_type"] == "VEGETABLES"
    assert crop["status"] == "AVAILABLE"
    assert Decimal(crop["quantity"]) == Decimal("10")

    response = await client.get(CROPS_URL, params={"crop_type": "VEGETABLES"})
    assert response.status_code == 200, f"List crops failed: {response.text}"
    assert response.json()["total"] == 1

    response = await client.get(f"{CROPS_URL}/{crop['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Onions"


async def test_only_farmers_list_crops(client, auth_headers, buyer):
    response = await client.post(
        CROPS_URL,
        json={"name": "Rice", "crop_type": "GRAINS", "quantity": "5", "price": "40"},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied. Farmers only."


async def test_order_lifecycle(client, auth_headers, list_crop, place_order, farmer, buyer):
    crop = await list_crop()

    response = await place_order(crop["id"], quantity="10")
    assert response.status_code == 201, f"Create order failed: {response.text}"
    body = response.json()
    order_id = body["order"]["id"]
    assert body["order"]["status"] == "PENDING"
    assert Decimal(body["order"]["total_amount"]) == Decimal("1000.00")
    assert body["escrow"]["status"] == "HELD"
    assert Decimal(body["escrow"]["held_amount"]) == Decimal("995.00")
    assert body["crop"]["status"] == "SOLD"

    response = await client.put(
        f"{ORDERS_URL}/{order_id}/status",
        json={"status": "in-transit", "notes": "Loaded on truck"},
        headers=auth_headers(farmer),
    )
    assert response.status_code == 200, f"Dispatch failed: {response.text}"
    assert response.json()["order"]["status"] == "IN_TRANSIT"

    response = await client.put(
        f"{ORDERS_URL}/{order_id}/status",
        json={"status": "delivered"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 200, f"Delivery failed: {response.text}"
    body = response.json()
    assert body["order"]["status"] == "DELIVERED"
    assert body["escrow"]["status"] == "RELEASED"

    response = await client.get(f"{ORDERS_URL}/{order_id}", headers=auth_headers(farmer))
    assert response.status_code == 200
    history = response.json()["status_history"]
    assert [h["to_status"] for h in history] == ["PENDING", "IN_TRANSIT", "DELIVERED"]


async def test_cancel_order(client, auth_headers, list_crop, place_order, buyer):
    crop = await list_crop()
    order_id = (await place_order(crop["id"], quantity="10")).json()["order"]["id"]

    response = await client.post(
        f"{ORDERS_URL}/{order_id}/cancel",
        json={"reason": "buyer_cancellation"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 200, f"Cancel failed: {response.text}"
    body = response.json()
    assert body["message"] == "Order cancelled successfully"
    assert body["order"]["status"] == "CANCELED"
    assert Decimal(body["penalty_amount"]) == Decimal("49.75")
    assert Decimal(body["refund_amount"]) == Decimal("945.25")

    response = await client.get(f"{CROPS_URL}/{crop['id']}")
    assert response.json()["status"] == "AVAILABLE"
    assert Decimal(response.json()["quantity"]) == Decimal("10")

    response = await client.post(
        f"{ORDERS_URL}/{order_id}/cancel",
        json={"reason": "buyer_cancellation"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 409
    assert response.json()["type"] == "InvalidTransitionError"


async def test_list_orders(client, auth_headers, list_crop, place_order, buyer, other_buyer):
    crop = await list_crop()
    await place_order(crop["id"], quantity="1")
    await place_order(crop["id"], quantity="1", actor=other_buyer)

    response = await client.get(ORDERS_URL, params={"status": "pending"}, headers=auth_headers(buyer))
    assert response.status_code == 200, f"List orders failed: {response.text}"
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["buyer_id"] == str(buyer.user_id)

    response = await client.get(ORDERS_URL, params={"status": "bogus"}, headers=auth_headers(buyer))
    assert response.status_code == 400


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-User-Id": "not-a-uuid", "X-User-Role": "BUYER"},
        {"X-User-Id": str(uuid.uuid4()), "X-User-Role": "SUPERUSER"},
        {"X-User-Id": str(uuid.uuid4())},
    ],
)
async def test_missing_or_invalid_identity_is_unauthorized(client, headers):
    response = await client.get(ORDERS_URL, headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"


async def test_error_status_mapping(client, auth_headers, gateway, list_crop, place_order, farmer, other_buyer):
    crop = await list_crop()

    response = await place_order(crop["id"], actor=farmer)
    assert response.status_code == 403
    assert response.json()["type"] == "ForbiddenError"

    response = await place_order(str(uuid.uuid4()))
    assert response.status_code == 404
    assert response.json()["type"] == "NotFoundError"

    response = await place_order(crop["id"], quantity="11")
    assert response.status_code == 409
    assert response.json()["type"] == "InsufficientStockError"

    response = await place_order(crop["id"], quantity="0")
    assert response.status_code == 422

    gateway.decline_all = True
    response = await place_order(crop["id"])
    assert response.status_code == 402
    assert response.json()["type"] == "PaymentDeclinedError"
    gateway.decline_all = False

    order_id = (await place_order(crop["id"])).json()["order"]["id"]

    response = await client.put(
        f"{ORDERS_URL}/{order_id}/status",
        json={"status": "bogus"},
        headers=auth_headers(farmer),
    )
    assert response.status_code == 400
    assert response.json()["type"] == "InvalidStatusError"

    response = await client.put(
        f"{ORDERS_URL}/{order_id}/status",
        json={"status": "delivered"},
        headers=auth_headers(other_buyer),
    )
    assert response.status_code == 403

    response = await client.get(f"{ORDERS_URL}/{order_id}", headers=auth_headers(other_buyer))
    assert response.status_code == 403

    response = await client.get(f"{ORDERS_URL}/{uuid.uuid4()}", headers=auth_headers(farmer))
    assert response.status_code == 404
