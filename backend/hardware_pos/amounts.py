# Overview: Fixed-point helpers for money (2 places) and stock quantities (3 places).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
ZERO = Decimal("0")

# Numeric(12, x) ceiling
MAX_AMOUNT = Decimal("999999999.99")


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field} is out of range")
    return result


def to_money(value, field: str = "amount") -> Decimal:
    """Parse client or database input into a 2-place Decimal."""
    if value is None:
        return ZERO.quantize(MONEY_PLACES)
    return _to_decimal(value, field).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_quantity(value, field: str = "quantity") -> Decimal:
    """Parse client or database input into a 3-place Decimal."""
    if value is None:
        return ZERO.quantize(QUANTITY_PLACES)
    return _to_decimal(value, field).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(to_money(value))


def quantity_str(value) -> str | None:
    if value is None:
        return None
    return str(to_quantity(value))
