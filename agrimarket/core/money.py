"""Fixed-point money helpers. All amounts are Decimal rounded half-up to paise."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """Convert without picking up binary float noise (0.1 -> Decimal('0.1'))."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Round to 2 decimal places using standard (half-up) rounding.

    Examples:
        >>> round2(Decimal("49.75"))
        Decimal('49.75')
        >>> round2("0.125")
        Decimal('0.13')
    """
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
