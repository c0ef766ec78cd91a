"""Rounding helpers matching SQL ``ROUND`` (half away from zero)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float]


def round_decimal(value: Number, places: int = 2) -> Decimal:
    """Round to ``places`` decimals using ROUND_HALF_UP."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def round_float(value: Number, places: int = 2) -> float:
    """Like :func:`round_decimal` but returns a float."""
    return float(round_decimal(value, places))
