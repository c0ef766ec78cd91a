"""Transaction contract and loading utilities.

Every analysis in this toolkit reads the same relation:
``transactions(customer_id, transaction_date, amount)``. This module
validates raw records into immutable :class:`Transaction` objects and
applies the shared qualification rule (only positive amounts take part
in any metric; returns and refunds are excluded).
"""

from __future__ import annotations

import json
import logging
import numbers
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


@dataclass(frozen=True)
class Transaction:
    """A single purchase (or refund) line.

    Attributes
    ----------
    customer_id:
        Identifier of the purchasing customer.
    transaction_date:
        Calendar date of the transaction.
    amount:
        Signed transaction amount. Non-positive amounts are refunds or
        adjustments and are ignored by every metric.
    """

    customer_id: str
    transaction_date: date
    amount: Decimal

    @property
    def is_qualifying(self) -> bool:
        return self.amount > 0


#: Fields every raw record must provide.
REQUIRED_FIELDS = ("customer_id", "transaction_date", "amount")


def _coerce_date(value: Any, idx: int) -> date:
    if value is None or value is pd.NaT or (isinstance(value, float) and pd.isna(value)):
        raise ValueError(f"Transaction at index {idx} has a missing transaction_date")
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise ValueError(
                f"Transaction at index {idx} has unparseable transaction_date {value!r}"
            ) from None
    raise TypeError(
        f"Transaction at index {idx} has transaction_date of unsupported type "
        f"{type(value).__name__}: {value!r}"
    )


def _coerce_amount(value: Any, idx: int) -> Decimal:
    if isinstance(value, bool):
        raise TypeError(f"Transaction at index {idx} has boolean amount {value!r}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (numbers.Real, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(
                f"Transaction at index {idx} has non-numeric amount {value!r}"
            ) from None
    else:
        raise TypeError(
            f"Transaction at index {idx} has amount of unsupported type "
            f"{type(value).__name__}: {value!r}"
        )
    if not amount.is_finite():
        raise ValueError(f"Transaction at index {idx} has non-finite amount {value!r}")
    return amount


def parse_transactions(records: Iterable[Mapping[str, Any]]) -> list[Transaction]:
    """Validate raw records and return :class:`Transaction` objects.

    Parameters
    ----------
    records:
        Iterable of mappings providing ``customer_id``, ``transaction_date``
        and ``amount``. Dates may be ``date``/``datetime`` instances or ISO
        8601 strings; amounts may be numbers, numeric strings or ``Decimal``.

    Raises
    ------
    KeyError
        If a record is missing a required field.
    ValueError
        If a date or amount cannot be parsed, or a customer_id is blank.
    TypeError
        If a field has an unsupported type.

    Examples
    --------
    >>> parse_transactions([
    ...     {"customer_id": "C1", "transaction_date": "2024-01-10", "amount": 100},
    ... ])
    [Transaction(customer_id='C1', transaction_date=datetime.date(2024, 1, 10), amount=Decimal('100'))]
    """
    parsed: list[Transaction] = []
    for idx, record in enumerate(records):
        missing = [name for name in REQUIRED_FIELDS if name not in record]
        if missing:
            raise KeyError(f"Transaction at index {idx} missing key(s) {missing}")

        raw_customer = record["customer_id"]
        if raw_customer is None or (
            isinstance(raw_customer, float) and pd.isna(raw_customer)
        ):
            raise ValueError(f"Transaction at index {idx} has an empty customer_id")
        customer_id = str(raw_customer).strip()
        if not customer_id:
            raise ValueError(f"Transaction at index {idx} has an empty customer_id")

        parsed.append(
            Transaction(
                customer_id=customer_id,
                transaction_date=_coerce_date(record["transaction_date"], idx),
                amount=_coerce_amount(record["amount"], idx),
            )
        )
    return parsed


def qualifying_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    """Return only the transactions with a strictly positive amount."""
    qualifying = [t for t in transactions if t.is_qualifying]
    excluded = len(transactions) - len(qualifying)
    if excluded:
        logger.info(
            f"Excluded {excluded} of {len(transactions)} transactions with "
            f"non-positive amounts (returns/refunds)"
        )
    return qualifying


def load_transactions(path: Path) -> list[Transaction]:
    """Load transactions from a JSON list or a CSV file.

    CSV files must have ``customer_id``, ``transaction_date`` and ``amount``
    columns; extra columns are ignored.
    """
    resolved = Path(path).resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )

    if resolved.suffix.lower() == ".csv":
        frame = pd.read_csv(
            resolved, dtype={"customer_id": str, "transaction_date": str, "amount": str}
        )
        missing = set(REQUIRED_FIELDS) - set(frame.columns)
        if missing:
            raise ValueError(f"CSV file {resolved} missing required columns: {sorted(missing)}")
        records = frame[list(REQUIRED_FIELDS)].to_dict("records")
    else:
        with resolved.open("r", encoding="utf-8") as fh:
            records = json.load(fh)
        if not isinstance(records, list):
            raise ValueError("Expected a list of transactions in the input file")

    transactions = parse_transactions(records)
    logger.info(f"Loaded {len(transactions)} transactions from {resolved}")
    return transactions
