"""Pandas DataFrame adapters for RFM scoring."""

from typing import Sequence

import pandas as pd  # type: ignore

from retail_analytics.analyses.rfm_segments import (
    CustomerRFM,
    RFMConfig,
    SegmentSummary,
    SegmentTopCustomer,
    calculate_customer_rfm,
)
from ._utils import dataclasses_to_dataframe
from .transactions import dataframe_to_transactions

CUSTOMER_RFM_COLUMNS = [
    "customer_id",
    "recency_days",
    "frequency",
    "monetary_value",
    "last_purchase_date",
    "recency_score",
    "frequency_score",
    "monetary_score",
    "rfm_code",
    "segment",
    "estimated_clv",
]

SEGMENT_SUMMARY_COLUMNS = [
    "segment",
    "customer_count",
    "percentage_of_customers",
    "avg_recency",
    "avg_frequency",
    "avg_monetary",
    "total_revenue",
    "percentage_of_revenue",
    "avg_clv",
    "marketing_priority_score",
]

TOP_CUSTOMER_COLUMNS = [
    "segment",
    "customer_id",
    "recency_days",
    "frequency",
    "monetary_value",
    "rfm_code",
    "segment_rank",
]


def customer_rfm_to_dataframe(customers: Sequence[CustomerRFM]) -> pd.DataFrame:
    """Convert CustomerRFM rows to a DataFrame.

    Row order is preserved (monetary_value descending from the scorer).
    ``estimated_clv`` is NaN where the estimate is undefined.

    Example:
        >>> customers = calculate_customer_rfm(transactions)
        >>> rfm_df = customer_rfm_to_dataframe(customers)
        >>> rfm_df[rfm_df['segment'] == 'Champions']
    """
    return dataclasses_to_dataframe(
        customers, CUSTOMER_RFM_COLUMNS, date_columns=["last_purchase_date"]
    )


def segment_summary_to_dataframe(summaries: Sequence[SegmentSummary]) -> pd.DataFrame:
    """Convert segment summaries to a DataFrame (total revenue descending)."""
    return dataclasses_to_dataframe(summaries, SEGMENT_SUMMARY_COLUMNS)


def top_customers_to_dataframe(rows: Sequence[SegmentTopCustomer]) -> pd.DataFrame:
    return dataclasses_to_dataframe(rows, TOP_CUSTOMER_COLUMNS)


def calculate_customer_rfm_df(
    transactions_df: pd.DataFrame,
    config: RFMConfig = RFMConfig(),
    customer_id_col: str = "customer_id",
    transaction_date_col: str = "transaction_date",
    amount_col: str = "amount",
) -> pd.DataFrame:
    """Score RFM segments directly from a transactions DataFrame.

    Convenience function combining conversion and scoring.

    Example:
        >>> txns_df = pd.read_csv('transactions.csv')
        >>> rfm_df = calculate_customer_rfm_df(txns_df)
        >>> rfm_df.to_csv('customer_rfm.csv', index=False)
    """
    transactions = dataframe_to_transactions(
        transactions_df,
        customer_id_col=customer_id_col,
        transaction_date_col=transaction_date_col,
        amount_col=amount_col,
    )
    return customer_rfm_to_dataframe(calculate_customer_rfm(transactions, config))
