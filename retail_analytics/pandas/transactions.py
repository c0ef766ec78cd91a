"""Pandas DataFrame adapters for the transaction relation."""

from typing import List, Sequence

import pandas as pd  # type: ignore

from retail_analytics.foundation.transactions import Transaction, parse_transactions
from ._utils import dataclasses_to_dataframe


def dataframe_to_transactions(
    transactions_df: pd.DataFrame,
    customer_id_col: str = "customer_id",
    transaction_date_col: str = "transaction_date",
    amount_col: str = "amount",
) -> List[Transaction]:
    """Convert a pandas DataFrame to validated Transaction objects.

    Args:
        transactions_df: DataFrame with one row per transaction
        *_col: Column name mappings for flexibility

    Returns:
        List of Transaction objects in DataFrame row order

    Raises:
        ValueError: If DataFrame missing required columns, has null values, or invalid data

    Example:
        >>> df = pd.read_csv('transactions.csv')
        >>> transactions = dataframe_to_transactions(df)

    Example with custom column names:
        >>> transactions = dataframe_to_transactions(
        ...     df,
        ...     customer_id_col='client_id',
        ...     amount_col='revenue'
        ... )
    """
    required_mapping = {
        "customer_id": customer_id_col,
        "transaction_date": transaction_date_col,
        "amount": amount_col,
    }

    missing_cols = set(required_mapping.values()) - set(transactions_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if transactions_df.empty:
        return []

    required_cols = list(required_mapping.values())
    null_mask = transactions_df[required_cols].isnull()
    if null_mask.any().any():
        null_col_names = null_mask.any()[null_mask.any()].index.tolist()
        first_bad_row = int(null_mask.any(axis=1).to_numpy().argmax())
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names} "
            f"(first at row {first_bad_row}). Transactions require complete data."
        )

    records = (
        {
            "customer_id": record[customer_id_col],
            "transaction_date": record[transaction_date_col],
            "amount": record[amount_col],
        }
        for record in transactions_df.to_dict("records")
    )
    return parse_transactions(records)


def transactions_to_dataframe(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Convert Transaction objects to a DataFrame (amount as float)."""
    return dataclasses_to_dataframe(
        transactions,
        ["customer_id", "transaction_date", "amount"],
        date_columns=["transaction_date"],
    )
