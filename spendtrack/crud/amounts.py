"""Fixed-point helpers shared by the analysis queries."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Optional, Union

CENT: Final[Decimal] = Decimal("0.01")
ZERO: Final[Decimal] = Decimal("0.00")

Number = Union[Decimal, float, int, str]


def to_money(value: Optional[Number]) -> Decimal:
    """Coerce driver output (float on SQLite aggregates, Decimal elsewhere) to cents."""

    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(part: Number, whole: Number) -> Decimal:
    """``part / whole * 100`` rounded to cents; ``0`` when ``whole`` is zero."""

    whole_dec = Decimal(str(whole))
    if whole_dec == 0:
        return ZERO
    return (Decimal(str(part)) / whole_dec * 100).quantize(CENT, rounding=ROUND_HALF_UP)
