"""
Escrow Ledger Service

Holds buyer funds per order until delivery is confirmed:
- hold: record gross amount, platform commission and the held remainder
- release: pay the held amount out to the farmer
- refund: return the held amount to the buyer, less a penalty when the buyer cancels

Every transition out of HELD is a conditional UPDATE on (order_id, status=HELD),
so at most one release/refund can ever succeed for an order.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agrimarket.config import settings
from agrimarket.core.exceptions import NotFoundError, DuplicateHoldError, AlreadyFinalizedError
from agrimarket.core.money import round2, to_decimal, ZERO
from agrimarket.models.escrow import EscrowRecord, EscrowStatus
from agrimarket.schemas.escrow import EscrowSnapshot

logger = logging.getLogger(__name__)

BUYER_CANCELLATION = "buyer_cancellation"


class EscrowLedger:
    """
    Durable escrow store keyed by order.

    Operations flush but never commit; the caller owns the transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        commission_rate: Optional[Decimal] = None,
        penalty_rate: Optional[Decimal] = None,
    ):
        self.db = db
        self.commission_rate = to_decimal(
            settings.COMMISSION_RATE if commission_rate is None else commission_rate
        )
        self.penalty_rate = to_decimal(
            settings.BUYER_CANCELLATION_PENALTY_RATE if penalty_rate is None else penalty_rate
        )

    async def _get_record(self, order_id: uuid.UUID) -> EscrowRecord:
        stmt = (
            select(EscrowRecord)
            .where(EscrowRecord.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NotFoundError("No escrow found for this order", {"order_id": str(order_id)})
        return record

    async def hold(
        self,
        order_id: uuid.UUID,
        amount: Decimal,
        commission_rate: Optional[Decimal] = None,
        transaction_id: Optional[str] = None,
    ) -> EscrowSnapshot:
        """
        Hold `amount` for an order, minus platform commission.

        Args:
            order_id: Order the funds belong to
            amount: Gross amount authorized from the buyer
            commission_rate: Platform cut; defaults to COMMISSION_RATE
            transaction_id: Gateway authorization backing the funds

        Returns:
            Snapshot of the new HELD record

        Raises:
            DuplicateHoldError: a record already exists for the order
        """
        amount = round2(amount)
        rate = self.commission_rate if commission_rate is None else to_decimal(commission_rate)

        existing = await self.db.execute(
            select(EscrowRecord.id).where(EscrowRecord.order_id == order_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateHoldError(
                "Escrow already exists for this order",
                {"order_id": str(order_id)}
            )

        commission = round2(amount * rate)
        record = EscrowRecord(
            order_id=order_id,
            transaction_id=transaction_id,
            gross_amount=amount,
            commission_rate=rate,
            commission_amount=commission,
            held_amount=amount - commission,
            status=EscrowStatus.HELD.value,
        )
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent hold on the same order
            raise DuplicateHoldError(
                "Escrow already exists for this order",
                {"order_id": str(order_id)}
            ) from e

        logger.info(
            f"Escrow held for order {order_id}: gross={amount}, "
            f"commission={commission}, held={record.held_amount}"
        )
        return EscrowSnapshot.model_validate(record)

    async def release(self, order_id: uuid.UUID) -> EscrowSnapshot:
        """
        Release held funds to the farmer.

        Raises:
            NotFoundError: no record for the order
            AlreadyFinalizedError: record already released or refunded
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(EscrowRecord)
            .where(
                EscrowRecord.order_id == order_id,
                EscrowRecord.status == EscrowStatus.HELD.value,
            )
            .values(
                status=EscrowStatus.RELEASED.value,
                released_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)

        if result.rowcount == 0:
            record = await self._get_record(order_id)
            raise AlreadyFinalizedError(
                "Payment already released or refunded",
                {"order_id": str(order_id), "status": record.status}
            )

        record = await self._get_record(order_id)
        logger.info(f"Escrow released for order {order_id}: {record.held_amount} paid to farmer")
        return EscrowSnapshot.model_validate(record)

    async def refund(self, order_id: uuid.UUID, reason: str) -> EscrowSnapshot:
        """
        Refund held funds to the buyer.

        A buyer-initiated cancellation forfeits a penalty of
        BUYER_CANCELLATION_PENALTY_RATE of the held amount.

        Raises:
            NotFoundError: no record for the order
            AlreadyFinalizedError: record already released or refunded
        """
        record = await self._get_record(order_id)
        if not record.is_held:
            raise AlreadyFinalizedError(
                "Payment already released or refunded",
                {"order_id": str(order_id), "status": record.status}
            )

        held = record.held_amount
        if reason == BUYER_CANCELLATION:
            penalty = round2(held * self.penalty_rate)
        else:
            penalty = ZERO
        refund_amount = held - penalty

        now = datetime.now(timezone.utc)
        stmt = (
            update(EscrowRecord)
            .where(
                EscrowRecord.order_id == order_id,
                EscrowRecord.status == EscrowStatus.HELD.value,
            )
            .values(
                status=EscrowStatus.REFUNDED.value,
                refunded_at=now,
                refund_amount=refund_amount,
                penalty_amount=penalty,
                refund_reason=reason,
                refund_transaction_id=f"txn_{uuid.uuid4().hex[:12]}",
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise AlreadyFinalizedError(
                "Payment already released or refunded",
                {"order_id": str(order_id)}
            )

        record = await self._get_record(order_id)
        logger.info(
            f"Escrow refunded for order {order_id}: refund={refund_amount}, "
            f"penalty={penalty}, reason={reason}"
        )
        return EscrowSnapshot.model_validate(record)

    async def status(self, order_id: uuid.UUID) -> EscrowSnapshot:
        """Read-only snapshot of an order's escrow."""
        return EscrowSnapshot.model_validate(await self._get_record(order_id))
