"""
Module: stock_kernel.db.types
Responsibility: Annotated column type aliases and the rounding helpers used
    for every reported quantity, cost and value.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and engines.  MUST NOT import from any of those.

Invariants enforced:
    - No floats.  Quantities, unit costs and values are Decimal throughout.
    - Storage precision is Numeric(38, 9); reporting precision is applied
      only at the edge through round_quantity / round_money / round_unit_cost.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

Quantity = Annotated[Decimal, Numeric(38, 9)]

Money = Annotated[Decimal, Numeric(38, 9)]

Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


# Reporting precision
QUANTITY_DECIMAL_PLACES = 3
MONEY_DECIMAL_PLACES = 2
UNIT_COST_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def _quantize(value: Decimal, places: int, rounding: str) -> Decimal:
    return Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=rounding)


def round_quantity(
    value: Decimal,
    decimal_places: int = QUANTITY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a stock quantity for reporting (3 places, half-up)."""
    return _quantize(value, decimal_places, rounding)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value for reporting.

    Args:
        value: Unrounded amount.
        decimal_places: Places to keep (default 2).
        rounding: Decimal rounding mode (default ROUND_HALF_UP).

    Returns:
        The quantized Decimal.
    """
    return _quantize(value, decimal_places, rounding)


def round_unit_cost(value: Decimal) -> Decimal:
    return _quantize(value, UNIT_COST_DECIMAL_PLACES, DEFAULT_ROUNDING)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce int/str input to Decimal. Floats are rejected."""
    if isinstance(value, float):
        raise TypeError(f"Float not allowed for stock amounts: {value!r}")
    return Decimal(value)
