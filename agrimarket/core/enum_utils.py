"""
Enum Utilities for VARCHAR-based Status Fields

STORAGE CONVENTION:
━━━━━━━━━━━━━━━━━━━
• Database: VARCHAR(50) - NOT PostgreSQL ENUM
• SQLAlchemy: String(50) with Mapped[str]
• Pydantic: Python Enum for API validation
• Case: All enum values stored in UPPERCASE

DATA FLOW:
━━━━━━━━━━
INPUT (API Request):
    "in-transit" → normalize_to_uppercase() → "IN_TRANSIT" → OrderStatus.IN_TRANSIT

SERVICE → DATABASE:
    OrderStatus.IN_TRANSIT → get_enum_value() → "IN_TRANSIT" → VARCHAR

COMPARISON:
    is_status(order.status, OrderStatus.PENDING)
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type, Set


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> str:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.PENDING)
        'PENDING'
        >>> get_enum_value("PENDING")
        'PENDING'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a string value to an enum instance, or None if it is not a member.

    Examples:
        >>> to_enum("PENDING", OrderStatus)
        OrderStatus.PENDING
        >>> to_enum("INVALID", OrderStatus)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


# =============================================================================
# COMPARISON HELPERS
# =============================================================================

def is_status(db_value: str, enum_value: Enum) -> bool:
    """Compare a database string with an enum value."""
    if db_value is None:
        return False
    return db_value == enum_value.value


# =============================================================================
# CASE NORMALIZATION FOR PYDANTIC SCHEMAS
# =============================================================================

def normalize_to_uppercase(value: Any, valid_values: Set[str]) -> Any:
    """
    Normalize a string value to its UPPERCASE enum form if it is a valid value.

    Hyphens and spaces are accepted as word separators, so the mobile client's
    'in-transit' maps to 'IN_TRANSIT'.

    Examples:
        >>> normalize_to_uppercase('in-transit', {'PENDING', 'IN_TRANSIT'})
        'IN_TRANSIT'
        >>> normalize_to_uppercase('invalid', {'PENDING', 'IN_TRANSIT'})
        'invalid'  # Returned as-is for Pydantic to reject
    """
    if value is None:
        return value
    if isinstance(value, str):
        upper_v = value.strip().upper().replace("-", "_").replace(" ", "_")
        if upper_v in valid_values:
            return upper_v
    return value


def create_uppercase_validator(field_name: str, valid_values: Set[str]) -> classmethod:
    """
    Create a Pydantic field_validator that normalizes values to UPPERCASE.

    Usage:
        class MySchema(BaseModel):
            status: OrderStatus

            _normalize_status = create_uppercase_validator('status', VALID_ORDER_STATUSES)
    """
    from pydantic import field_validator

    @field_validator(field_name, mode='before')
    @classmethod
    def validate(cls, v):
        return normalize_to_uppercase(v, valid_values)

    return validate


# =============================================================================
# PRE-DEFINED VALID VALUE SETS
# =============================================================================

VALID_ORDER_STATUSES = {
    "PENDING", "IN_TRANSIT", "DELIVERED", "CANCELED", "PAYMENT_RELEASED"
}

VALID_CROP_TYPES = {"VEGETABLES", "FRUITS", "GRAINS", "PULSES", "OTHERS"}

VALID_ACTOR_ROLES = {"FARMER", "BUYER", "ADMIN"}
