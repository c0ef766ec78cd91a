"""Foundational building blocks shared by every analysis.

This package exposes the transaction contract, calendar-month helpers
and the rank-then-bucket scoring used for RFM quintiles.
"""

from .periods import add_months, month_range, month_start, months_between, quarter_of
from .quintiles import bucket_for_position, ntile
from .transactions import (
    Transaction,
    load_transactions,
    parse_transactions,
    qualifying_transactions,
)

__all__ = [
    "Transaction",
    "load_transactions",
    "parse_transactions",
    "qualifying_transactions",
    "add_months",
    "month_range",
    "month_start",
    "months_between",
    "quarter_of",
    "bucket_for_position",
    "ntile",
]
