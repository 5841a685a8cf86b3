"""SQLAlchemy models. Importing this package registers every table on Base.metadata."""
from agrimarket.models.crop import Crop, CropStatus, CropType
from agrimarket.models.order import Order, OrderStatus, OrderStatusHistory, TERMINAL_ORDER_STATUSES
from agrimarket.models.escrow import EscrowRecord, EscrowStatus

__all__ = [
    "Crop",
    "CropStatus",
    "CropType",
    "Order",
    "OrderStatus",
    "OrderStatusHistory",
    "TERMINAL_ORDER_STATUSES",
    "EscrowRecord",
    "EscrowStatus",
]
