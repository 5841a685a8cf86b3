from decimal import Decimal

import pytest

from agrimarket.core.exceptions import PaymentDeclinedError, PaymentGatewayError
from agrimarket.services.payment_gateway import MockPaymentGateway


async def test_authorize_returns_transaction():
    gateway = MockPaymentGateway()

    authorization = await gateway.authorize(Decimal("250.00"))

    assert authorization.transaction_id.startswith("txn_")
    assert len(authorization.transaction_id) == len("txn_") + 12
    assert authorization.amount == Decimal("250.00")
    assert authorization.transaction_id in gateway.authorizations


async def test_authorize_rejects_non_positive_amount():
    with pytest.raises(PaymentDeclinedError):
        await MockPaymentGateway().authorize(Decimal("0"))


async def test_decline_rules():
    gateway = MockPaymentGateway(decline_above=Decimal("100.00"))

    await gateway.authorize(Decimal("100.00"))
    with pytest.raises(PaymentDeclinedError):
        await gateway.authorize(Decimal("100.01"))

    with pytest.raises(PaymentDeclinedError):
        await MockPaymentGateway(decline_all=True).authorize(Decimal("1.00"))


async def test_void_once():
    gateway = MockPaymentGateway()
    authorization = await gateway.authorize(Decimal("10.00"))

    await gateway.void(authorization.transaction_id)
    assert authorization.transaction_id in gateway.voided

    with pytest.raises(PaymentGatewayError):
        await gateway.void(authorization.transaction_id)


async def test_void_unknown_or_failing():
    with pytest.raises(PaymentGatewayError):
        await MockPaymentGateway().void("txn_unknown")

    gateway = MockPaymentGateway(fail_voids=True)
    authorization = await gateway.authorize(Decimal("10.00"))
    with pytest.raises(PaymentGatewayError):
        await gateway.void(authorization.transaction_id)
    assert not gateway.voided
