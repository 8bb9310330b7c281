"""Money helpers."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from bson.decimal128 import Decimal128

from app.core.config import settings

CENT = Decimal("0.01")
ZERO = Decimal("0")


def coerce_decimal(value: Any) -> Any:
    """Convert stored numeric forms to Decimal, leaving anything else alone."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, float):
        # Legacy documents may hold doubles; go through str to avoid binary noise
        return Decimal(str(value))
    return value


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(coerce_decimal(value))


def quantize(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal, symbol: str | None = None) -> str:
    """Display form used in messages and formatted_* fields, e.g. R1,234.56."""
    symbol = settings.CURRENCY_SYMBOL if symbol is None else symbol
    value = quantize(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)
