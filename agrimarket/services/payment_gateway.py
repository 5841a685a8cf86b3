"""
Payment Gateway collaborator

The order workflow only needs two operations from a gateway:
- authorize(amount): capture buyer funds that the platform then holds in escrow
- void(transaction_id): cancel an authorization when order creation cannot complete

MockPaymentGateway is the in-process implementation used until a real
gateway (Razorpay/Stripe) is integrated. It is deterministic apart from the
generated transaction ids and can be told to decline or to fail voids.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Optional, Set

from pydantic import BaseModel

from agrimarket.config import settings
from agrimarket.core.exceptions import PaymentDeclinedError, PaymentGatewayError

logger = logging.getLogger(__name__)


class PaymentAuthorization(BaseModel):
    """Result of a successful authorization."""
    transaction_id: str
    amount: Decimal
    authorized_at: datetime


class PaymentGateway(ABC):
    """Interface every payment gateway adapter implements."""

    @abstractmethod
    async def authorize(self, amount: Decimal) -> PaymentAuthorization:
        """Authorize `amount`; raise PaymentDeclinedError if the gateway refuses."""

    @abstractmethod
    async def void(self, transaction_id: str) -> None:
        """Cancel an authorization; raise PaymentGatewayError on failure."""


class MockPaymentGateway(PaymentGateway):
    """
    In-memory gateway.

    Args:
        delay_seconds: Simulated network latency per call
        decline_above: Decline any authorization larger than this amount
        decline_all: Decline every authorization
        fail_voids: Make every void raise PaymentGatewayError
    """

    def __init__(
        self,
        delay_seconds: float = 0.0,
        decline_above: Optional[Decimal] = None,
        decline_all: bool = False,
        fail_voids: bool = False,
    ):
        self.delay_seconds = delay_seconds
        self.decline_above = decline_above
        self.decline_all = decline_all
        self.fail_voids = fail_voids
        self.authorizations: Dict[str, PaymentAuthorization] = {}
        self.voided: Set[str] = set()

    @staticmethod
    def generate_transaction_id() -> str:
        return f"txn_{uuid.uuid4().hex[:12]}"

    async def authorize(self, amount: Decimal) -> PaymentAuthorization:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if amount <= 0:
            raise PaymentDeclinedError("Payment amount must be positive", {"amount": str(amount)})
        if self.decline_all or (self.decline_above is not None and amount > self.decline_above):
            logger.warning(f"Mock gateway declined authorization of {amount}")
            raise PaymentDeclinedError("Payment processing failed", {"amount": str(amount)})

        authorization = PaymentAuthorization(
            transaction_id=self.generate_transaction_id(),
            amount=amount,
            authorized_at=datetime.now(timezone.utc),
        )
        self.authorizations[authorization.transaction_id] = authorization
        logger.info(f"Authorized {amount} as {authorization.transaction_id}")
        return authorization

    async def void(self, transaction_id: str) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if self.fail_voids:
            raise PaymentGatewayError(
                "Gateway rejected void",
                {"transaction_id": transaction_id}
            )
        if transaction_id not in self.authorizations:
            raise PaymentGatewayError(
                f"Unknown transaction {transaction_id}",
                {"transaction_id": transaction_id}
            )
        if transaction_id in self.voided:
            raise PaymentGatewayError(
                f"Transaction {transaction_id} already voided",
                {"transaction_id": transaction_id}
            )

        self.voided.add(transaction_id)
        logger.info(f"Voided authorization {transaction_id}")


@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    """Get the process-wide gateway instance."""
    return MockPaymentGateway(delay_seconds=settings.MOCK_PAYMENT_DELAY_SECONDS)
