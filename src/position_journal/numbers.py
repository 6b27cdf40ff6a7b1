from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal(0)
ONE = Decimal(1)

# Largest |adjusted exponent| a coerced value may carry.
MAX_EXPONENT = 100


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    """Coerce ``value`` to a finite Decimal, returning ``default`` when it is not numeric."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return default
        try:
            number = Decimal(text)
        except InvalidOperation:
            return default
    if not number.is_finite():
        return default
    if number and abs(number.adjusted()) > MAX_EXPONENT:
        return default
    return number


def is_numeric(value: Any) -> bool:
    return to_decimal(value, default=None) is not None


def safe_div(numerator: Decimal, denominator: Decimal) -> Decimal:
    if not denominator:
        return ZERO
    return numerator / denominator


def round_half_up(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def mean(values: list[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)
