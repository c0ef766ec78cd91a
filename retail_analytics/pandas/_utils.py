"""Shared utilities for pandas conversion operations."""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any, Optional, Sequence

import pandas as pd  # type: ignore


def optional_decimal_to_float(value: Optional[Decimal]) -> Optional[float]:
    """Convert Decimal to float for pandas; None passes through (becomes NaN)."""
    return None if value is None else float(value)


def dataclasses_to_dataframe(
    rows: Sequence[Any],
    columns: Sequence[str],
    date_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """Convert frozen result dataclasses to a DataFrame with a fixed column order.

    Decimal fields become floats (None stays missing) and ``date_columns``
    are converted to ``datetime64``. An empty input yields an empty frame
    that still carries ``columns``.

    Args:
        rows: Dataclass instances exposing every name in ``columns``
        columns: Output column order
        date_columns: Columns holding ``datetime.date`` values

    Returns:
        DataFrame with one row per dataclass instance
    """
    if not rows:
        return pd.DataFrame(columns=list(columns))

    records = []
    for row in rows:
        data = asdict(row)
        records.append(
            {
                name: (
                    optional_decimal_to_float(data[name])
                    if isinstance(data[name], Decimal)
                    else data[name]
                )
                for name in columns
            }
        )

    df = pd.DataFrame(records, columns=list(columns))
    for name in date_columns:
        df[name] = pd.to_datetime(df[name])
    return df
