"""
Order Workflow

Drives an order through its lifecycle while keeping order status, escrow and
crop stock consistent:

    PENDING --farmer--> IN_TRANSIT --buyer--> DELIVERED   (escrow released)
    PENDING --buyer/farmer/admin--> CANCELED              (escrow refunded, stock restored)

Payment and escrow steps always run before the matching inventory step, so a
failure can only leave "escrow acted, stock not yet updated", never stock
released without an escrow record.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple, Union
import asyncio
import uuid
import logging

from sqlalchemy import select, update, func, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from agrimarket.config import settings
from agrimarket.core.actor import Actor, ActorRole
from agrimarket.core.enum_utils import (
    get_enum_value, to_enum, normalize_to_uppercase, VALID_ORDER_STATUSES,
)
from agrimarket.core.exceptions import (
    NotFoundError, ForbiddenError, InvalidTransitionError, InvalidStatusError,
    InsufficientStockError, CropUnavailableError, PaymentDeclinedError,
    PaymentGatewayError,
)
from agrimarket.core.money import round2, to_decimal
from agrimarket.models.crop import Crop
from agrimarket.models.order import Order, OrderStatus, OrderStatusHistory
from agrimarket.schemas.escrow import EscrowSnapshot
from agrimarket.services.escrow_ledger import EscrowLedger
from agrimarket.services.inventory_ledger import InventoryLedger
from agrimarket.services.payment_gateway import PaymentGateway, PaymentAuthorization

logger = logging.getLogger(__name__)


@dataclass
class OrderPlacement:
    """An order together with its escrow state."""
    order: Order
    escrow: EscrowSnapshot


@dataclass
class CancellationResult:
    order: Order
    escrow: EscrowSnapshot
    refund_amount: Decimal
    penalty_amount: Decimal
    refund_transaction_id: Optional[str]


class OrderWorkflow:
    """
    Service owning every order status change.

    All public operations commit on success and roll back on any failure.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        gateway_timeout: Optional[float] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.gateway_timeout = (
            settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS if gateway_timeout is None else gateway_timeout
        )
        self.inventory = InventoryLedger(db)
        self.escrow = EscrowLedger(db)

    # ==================== LOOKUPS ====================

    async def get_order_by_id(self, order_id: uuid.UUID) -> Order:
        """Get order with its crop, reflecting the latest committed state."""
        stmt = (
            select(Order)
            .options(selectinload(Order.crop), selectinload(Order.status_history))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found", {"order_id": str(order_id)})
        return order

    async def get_order(self, order_id: uuid.UUID, actor: Actor) -> OrderPlacement:
        """Get an order and its escrow status; only its parties and admins may look."""
        order = await self.get_order_by_id(order_id)
        if not self._is_party(order, actor):
            raise ForbiddenError("Not authorized to view this order", {"order_id": str(order_id)})
        escrow = await self.escrow.status(order.id)
        return OrderPlacement(order=order, escrow=escrow)

    async def list_orders(
        self,
        actor: Actor,
        status: Optional[Union[OrderStatus, str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Order], int]:
        """
        Get orders visible to the actor, newest first.

        Buyers see their own orders, farmers the orders placed on their crops,
        admins everything.
        """
        filters = []
        if status:
            filters.append(Order.status == normalize_to_uppercase(get_enum_value(status), VALID_ORDER_STATUSES))
        if actor.role == ActorRole.BUYER:
            filters.append(Order.buyer_id == actor.user_id)
        elif actor.role == ActorRole.FARMER:
            filters.append(Crop.farmer_id == actor.user_id)

        stmt = select(Order).join(Order.crop).options(selectinload(Order.crop))
        count_stmt = select(func.count(Order.id)).select_from(Order).join(Order.crop)
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        orders = (await self.db.execute(stmt)).scalars().all()
        return list(orders), total

    # ==================== CREATE ====================

    async def create_order(
        self,
        crop_id: uuid.UUID,
        actor: Actor,
        quantity: Decimal,
        pickup_date: Optional[datetime] = None,
    ) -> OrderPlacement:
        """
        Place an order: authorize payment, hold it in escrow, reserve stock.

        Nothing is persisted if the gateway declines. Once funds are authorized,
        any later failure rolls back escrow, stock and order together and voids
        the authorization before the error is re-raised.
        """
        if actor.role != ActorRole.BUYER:
            raise ForbiddenError("Access denied. Buyers only.")

        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValueError("Order quantity must be positive")
        # Quantities are stored to 2 decimal places
        if quantity != round2(quantity):
            raise ValueError("Order quantity supports at most 2 decimal places")

        crop = await self.inventory.get_crop(crop_id)
        if not crop.is_available:
            raise CropUnavailableError(
                "Crop is not available for purchase",
                {"crop_id": str(crop_id), "status": crop.status}
            )
        if quantity > crop.quantity:
            raise InsufficientStockError(
                "Requested quantity not available",
                {"crop_id": str(crop_id), "available": str(crop.quantity), "requested": str(quantity)}
            )

        unit_price = crop.price
        total_amount = round2(quantity * unit_price)

        authorization = await self._authorize(total_amount)

        order_id = uuid.uuid4()
        try:
            escrow = await self.escrow.hold(
                order_id,
                total_amount,
                self.escrow.commission_rate,
                transaction_id=authorization.transaction_id,
            )
            await self.inventory.reserve(crop_id, quantity)

            order = Order(
                id=order_id,
                crop_id=crop_id,
                buyer_id=actor.user_id,
                quantity=quantity,
                unit_price=unit_price,
                total_amount=total_amount,
                status=OrderStatus.PENDING.value,
                payment_id=authorization.transaction_id,
                pickup_date=pickup_date,
            )
            self.db.add(order)
            self.db.add(OrderStatusHistory(
                order_id=order_id,
                from_status=None,
                to_status=OrderStatus.PENDING.value,
                changed_by=actor.user_id,
                notes="Order created",
            ))
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Order creation on crop {crop_id} failed after authorization: {e}")
            await self._void_authorization(authorization)
            raise

        logger.info(
            f"Order {order_id} placed by buyer {actor.user_id}: "
            f"{quantity} of crop {crop_id} for {total_amount}"
        )
        return OrderPlacement(order=await self.get_order_by_id(order_id), escrow=escrow)

    # ==================== ADVANCE ====================

    async def advance_status(
        self,
        order_id: uuid.UUID,
        requested_status: Union[OrderStatus, str],
        actor: Actor,
        notes: Optional[str] = None,
    ) -> OrderPlacement:
        """
        Move an order forward.

        IN_TRANSIT may only be requested by the crop's farmer on a PENDING order;
        DELIVERED only by the buyer on an IN_TRANSIT order, and only if the
        escrow can be released.
        """
        target = to_enum(
            normalize_to_uppercase(get_enum_value(requested_status), VALID_ORDER_STATUSES),
            OrderStatus,
        )

        try:
            order = await self.get_order_by_id(order_id)
            now = datetime.now(timezone.utc)

            if target == OrderStatus.IN_TRANSIT:
                if not actor.is_farmer_of(order.crop.farmer_id):
                    raise ForbiddenError("Only farmer can update to in-transit")
                if not order.is_pending:
                    raise InvalidTransitionError(
                        "Invalid status transition",
                        {"from": order.status, "to": target.value}
                    )
                await self._transition(
                    order, OrderStatus.PENDING, OrderStatus.IN_TRANSIT, actor,
                    notes=notes, dispatched_at=now,
                )

            elif target == OrderStatus.DELIVERED:
                if not actor.is_buyer_of(order.buyer_id):
                    raise ForbiddenError("Only buyer can confirm delivery")
                if order.status != OrderStatus.IN_TRANSIT.value:
                    raise InvalidTransitionError(
                        "Order must be in transit first",
                        {"from": order.status, "to": target.value}
                    )
                # Release first; the order only advances if the farmer can be paid
                await self.escrow.release(order.id)
                await self._transition(
                    order, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, actor,
                    notes=notes, delivered_at=now,
                )

            else:
                raise InvalidStatusError(
                    "Invalid status",
                    {"requested": get_enum_value(requested_status)}
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Order {order_id} moved to {target.value} by {actor.role.value} {actor.user_id}")
        return OrderPlacement(
            order=await self.get_order_by_id(order_id),
            escrow=await self.escrow.status(order_id),
        )

    # ==================== CANCEL ====================

    async def cancel_order(
        self,
        order_id: uuid.UUID,
        reason: str,
        actor: Actor,
    ) -> CancellationResult:
        """
        Cancel a PENDING order: refund escrow, then restore the crop's stock.

        Once an order is in transit it can no longer be cancelled.
        """
        try:
            order = await self.get_order_by_id(order_id)
            if not self._is_party(order, actor):
                raise ForbiddenError("Not authorized to cancel this order", {"order_id": str(order_id)})
            if not order.is_pending:
                raise InvalidTransitionError(
                    "Cannot cancel order in current status",
                    {"status": order.status}
                )

            escrow = await self.escrow.refund(order.id, reason)

            await self._transition(
                order, OrderStatus.PENDING, OrderStatus.CANCELED, actor,
                notes=reason,
                cancellation_reason=reason,
                cancelled_at=datetime.now(timezone.utc),
            )
            await self.inventory.restore(order.crop_id, order.quantity)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Order {order_id} cancelled by {actor.role.value} {actor.user_id}: "
            f"refund={escrow.refund_amount}, penalty={escrow.penalty_amount}"
        )
        return CancellationResult(
            order=await self.get_order_by_id(order_id),
            escrow=escrow,
            refund_amount=escrow.refund_amount,
            penalty_amount=escrow.penalty_amount,
            refund_transaction_id=escrow.refund_transaction_id,
        )

    # ==================== HELPERS ====================

    @staticmethod
    def _is_party(order: Order, actor: Actor) -> bool:
        return (
            actor.is_admin
            or actor.is_buyer_of(order.buyer_id)
            or actor.is_farmer_of(order.crop.farmer_id)
        )

    async def _transition(
        self,
        order: Order,
        from_status: OrderStatus,
        to_status: OrderStatus,
        actor: Actor,
        notes: Optional[str] = None,
        **values,
    ) -> None:
        """Compare-and-set the order status and record it in the history."""
        stmt = (
            update(Order)
            .where(Order.id == order.id, Order.status == from_status.value)
            .values(
                status=to_status.value,
                updated_at=datetime.now(timezone.utc),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise InvalidTransitionError(
                "Order status changed concurrently",
                {"order_id": str(order.id), "expected": from_status.value, "to": to_status.value}
            )

        self.db.add(OrderStatusHistory(
            order_id=order.id,
            from_status=from_status.value,
            to_status=to_status.value,
            changed_by=actor.user_id,
            notes=notes,
        ))
        await self.db.flush()

    async def _authorize(self, amount: Decimal) -> PaymentAuthorization:
        """Authorize with the gateway; timeouts and gateway faults count as declines."""
        try:
            return await asyncio.wait_for(
                self.gateway.authorize(amount),
                timeout=self.gateway_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Payment authorization of {amount} timed out after {self.gateway_timeout}s")
            raise PaymentDeclinedError(
                "Payment gateway timed out",
                {"amount": str(amount), "timeout_seconds": self.gateway_timeout}
            )
        except PaymentGatewayError as e:
            logger.warning(f"Payment authorization of {amount} failed: {e.message}")
            raise PaymentDeclinedError("Payment processing failed", e.details) from e

    async def _void_authorization(self, authorization: PaymentAuthorization) -> None:
        """Compensate an authorization whose order could not be recorded."""
        try:
            await asyncio.wait_for(
                self.gateway.void(authorization.transaction_id),
                timeout=self.gateway_timeout,
            )
            logger.info(f"Voided authorization {authorization.transaction_id}")
        except Exception as e:
            # The original failure is re-raised by the caller
            logger.error(
                f"Failed to void authorization {authorization.transaction_id} "
                f"for {authorization.amount}: {e}"
            )
