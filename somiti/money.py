"""
Money Helpers

The cooperative keeps a single currency (Bangladeshi taka, two decimal places).
All monetary values are Decimal; floats never enter a calculation.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Iterable

from .errors import ValidationError

getcontext().prec = 28

CURRENCY_CODE = "BDT"
PRECISION = 2
ZERO = Decimal("0.00")
_QUANT = Decimal("0.1") ** PRECISION


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """
    Convert a request or storage value to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal('0.1'), not its binary
    approximation. Booleans and non-numeric strings raise ValidationError.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to currency precision, half up"""
    return amount.quantize(_QUANT, rounding=ROUND_HALF_UP)


def floor_at_zero(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def format_amount(amount: Decimal) -> str:
    """Render with exactly two decimal places, e.g. ``110.00``"""
    return str(round_money(amount))
