"""Pandas DataFrame adapters for the retail analyses."""

from .transactions import (
    dataframe_to_transactions,
    transactions_to_dataframe,
)
from .rfm import (
    customer_rfm_to_dataframe,
    segment_summary_to_dataframe,
    top_customers_to_dataframe,
    calculate_customer_rfm_df,
)
from .cohorts import (
    cohort_retention_to_dataframe,
    retention_pivot_to_dataframe,
    cohort_tables,
    calculate_cohort_retention_df,
)
from .churn import (
    churn_profiles_to_dataframe,
    churn_tables,
    calculate_churn_profiles_df,
)

__all__ = [
    # Transactions
    "dataframe_to_transactions",
    "transactions_to_dataframe",
    # RFM adapters
    "customer_rfm_to_dataframe",
    "segment_summary_to_dataframe",
    "top_customers_to_dataframe",
    "calculate_customer_rfm_df",
    # Cohort adapters
    "cohort_retention_to_dataframe",
    "retention_pivot_to_dataframe",
    "cohort_tables",
    "calculate_cohort_retention_df",
    # Churn adapters
    "churn_profiles_to_dataframe",
    "churn_tables",
    "calculate_churn_profiles_df",
]
