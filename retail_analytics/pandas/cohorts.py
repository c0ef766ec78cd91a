"""Pandas DataFrame adapters for cohort retention analysis."""

from typing import Dict, Sequence

import pandas as pd  # type: ignore

from retail_analytics.analyses.cohort_retention import (
    CohortConfig,
    CohortPerformance,
    CohortRetentionResult,
    RetentionCurvePoint,
    RetentionPivotRow,
    SeasonalRetention,
    average_retention_curve,
    calculate_cohort_retention,
    rank_cohort_performance,
    retention_executive_summary,
    retention_pivot,
    seasonal_retention,
)
from ._utils import dataclasses_to_dataframe, optional_decimal_to_float
from .transactions import dataframe_to_transactions

RETENTION_COLUMNS = [
    "cohort_month",
    "cohort_size",
    "period_number",
    "active_customers",
    "retention_rate",
    "transactions",
    "cohort_revenue",
    "revenue_per_original_customer",
    "revenue_retention_rate",
]

CURVE_COLUMNS = [
    "period_number",
    "avg_retention_rate",
    "cohorts_included",
    "retention_drop",
]

PERFORMANCE_COLUMNS = [
    "cohort_month",
    "cohort_size",
    "retention_3m",
    "retention_6m",
    "retention_12m",
    "total_cohort_revenue",
    "avg_revenue_per_customer",
    "retention_rank",
    "revenue_rank",
]

SEASONAL_COLUMNS = [
    "cohort_quarter",
    "cohort_month_of_year",
    "cohorts_included",
    "retention_1m",
    "retention_3m",
    "retention_6m",
    "retention_12m",
]

SUMMARY_COLUMNS = [
    "total_cohorts_analyzed",
    "avg_1_month_retention",
    "avg_3_month_retention",
    "avg_6_month_retention",
    "avg_12_month_retention",
]


def cohort_retention_to_dataframe(result: CohortRetentionResult) -> pd.DataFrame:
    """Flatten cohort retention to one row per (cohort_month, period_number)."""
    return dataclasses_to_dataframe(
        result.rows(), RETENTION_COLUMNS, date_columns=["cohort_month"]
    )


def retention_pivot_to_dataframe(rows: Sequence[RetentionPivotRow]) -> pd.DataFrame:
    """Spread pivot rows into ``month_0 .. month_N`` columns.

    Periods a cohort has not reached yet are NaN, while months without
    activity inside the observed window are 0.
    """
    width = max((len(row.retention) for row in rows), default=0)
    columns = ["cohort_month", "cohort_size"] + [f"month_{i}" for i in range(width)]
    if not rows:
        return pd.DataFrame(columns=columns)

    records = []
    for row in rows:
        record = {"cohort_month": row.cohort_month, "cohort_size": row.cohort_size}
        for i, value in enumerate(row.retention):
            record[f"month_{i}"] = optional_decimal_to_float(value)
        records.append(record)

    df = pd.DataFrame(records, columns=columns)
    df["cohort_month"] = pd.to_datetime(df["cohort_month"])
    return df


def retention_curve_to_dataframe(points: Sequence[RetentionCurvePoint]) -> pd.DataFrame:
    return dataclasses_to_dataframe(points, CURVE_COLUMNS)


def cohort_performance_to_dataframe(rows: Sequence[CohortPerformance]) -> pd.DataFrame:
    return dataclasses_to_dataframe(rows, PERFORMANCE_COLUMNS, date_columns=["cohort_month"])


def seasonal_retention_to_dataframe(rows: Sequence[SeasonalRetention]) -> pd.DataFrame:
    return dataclasses_to_dataframe(rows, SEASONAL_COLUMNS)


def cohort_tables(
    result: CohortRetentionResult, config: CohortConfig = CohortConfig()
) -> Dict[str, pd.DataFrame]:
    """Convert a cohort retention result into every reporting table.

    Returns:
        Dictionary with keys:
        - 'cohort_retention': retention table, one row per cohort period
        - 'retention_pivot': one row per cohort with month_N columns
        - 'retention_curve': average retention by period with drop-off
        - 'cohort_performance': milestone retention and ranks
        - 'seasonal_retention': milestone retention by acquisition month-of-year
        - 'retention_summary': single-row headline figures
    """
    return {
        "cohort_retention": cohort_retention_to_dataframe(result),
        "retention_pivot": retention_pivot_to_dataframe(retention_pivot(result, config)),
        "retention_curve": retention_curve_to_dataframe(
            average_retention_curve(result, config)
        ),
        "cohort_performance": cohort_performance_to_dataframe(
            rank_cohort_performance(result, config)
        ),
        "seasonal_retention": seasonal_retention_to_dataframe(seasonal_retention(result)),
        "retention_summary": dataclasses_to_dataframe(
            [retention_executive_summary(result)], SUMMARY_COLUMNS
        ),
    }


def calculate_cohort_retention_df(
    transactions_df: pd.DataFrame,
    config: CohortConfig = CohortConfig(),
    customer_id_col: str = "customer_id",
    transaction_date_col: str = "transaction_date",
    amount_col: str = "amount",
) -> Dict[str, pd.DataFrame]:
    """Run cohort retention on a transactions DataFrame.

    Example:
        >>> tables = calculate_cohort_retention_df(txns_df)
        >>> tables['retention_pivot'].to_csv('retention_pivot.csv', index=False)
    """
    transactions = dataframe_to_transactions(
        transactions_df,
        customer_id_col=customer_id_col,
        transaction_date_col=transaction_date_col,
        amount_col=amount_col,
    )
    return cohort_tables(calculate_cohort_retention(transactions, config), config)
