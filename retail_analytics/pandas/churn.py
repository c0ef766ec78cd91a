"""Pandas DataFrame adapters for churn risk scoring."""

from datetime import date
from typing import Dict, Sequence

import pandas as pd  # type: ignore

from retail_analytics.analyses.churn_risk import (
    ChurnConfig,
    ChurnFeatures,
    ChurnProfile,
    ChurnSegmentSummary,
    ChurnTrendPoint,
    HighValueAtRisk,
    build_churn_features,
    calculate_churn_profiles,
    churn_action_plan,
    high_value_at_risk,
    monthly_churn_trend,
    summarize_churn,
)
from ._utils import dataclasses_to_dataframe
from .transactions import dataframe_to_transactions

PROFILE_COLUMNS = [
    "customer_id",
    "first_purchase_date",
    "last_purchase_date",
    "days_since_last_purchase",
    "customer_tenure_days",
    "total_transactions",
    "active_months",
    "total_spent",
    "avg_transaction_amount",
    "avg_order_value",
    "purchase_frequency_per_month",
    "churn_status",
    "risk_segment",
    "churn_risk_score",
    "churn_probability",
    "recommended_action",
]

SUMMARY_COLUMNS = [
    "churn_status",
    "risk_segment",
    "customer_count",
    "percentage",
    "avg_total_spent",
    "total_revenue_at_risk",
    "avg_churn_probability",
    "avg_days_since_purchase",
]

HIGH_VALUE_COLUMNS = [
    "customer_id",
    "churn_status",
    "risk_segment",
    "total_spent",
    "days_since_last_purchase",
    "churn_probability",
    "purchase_frequency_per_month",
    "recommended_action",
    "potential_revenue_loss",
]

FEATURE_COLUMNS = [
    "customer_id",
    "is_churned",
    "recency_zscore",
    "frequency_zscore",
    "monetary_zscore",
    "tenure_zscore",
    "total_transactions",
    "active_months",
    "avg_transaction_amount",
    "transaction_frequency_interaction",
    "spend_rate",
]

TREND_COLUMNS = [
    "acquisition_month",
    "customers_acquired",
    "customers_churned",
    "churn_rate",
    "churn_rate_3month_avg",
]

ACTION_PLAN_COLUMNS = [
    "critical_risk_customers",
    "high_risk_customers",
    "revenue_at_risk",
    "avg_churn_probability_active",
    "high_value_churned",
]


def churn_profiles_to_dataframe(profiles: Sequence[ChurnProfile]) -> pd.DataFrame:
    """Convert churn profiles to a DataFrame, preserving risk order."""
    return dataclasses_to_dataframe(
        profiles,
        PROFILE_COLUMNS,
        date_columns=["first_purchase_date", "last_purchase_date"],
    )


def churn_summary_to_dataframe(rows: Sequence[ChurnSegmentSummary]) -> pd.DataFrame:
    return dataclasses_to_dataframe(rows, SUMMARY_COLUMNS)


def high_value_at_risk_to_dataframe(rows: Sequence[HighValueAtRisk]) -> pd.DataFrame:
    return dataclasses_to_dataframe(rows, HIGH_VALUE_COLUMNS)


def churn_features_to_dataframe(features: Sequence[ChurnFeatures]) -> pd.DataFrame:
    """Convert model features to a DataFrame; undefined z-scores become NaN."""
    return dataclasses_to_dataframe(features, FEATURE_COLUMNS)


def churn_trend_to_dataframe(points: Sequence[ChurnTrendPoint]) -> pd.DataFrame:
    return dataclasses_to_dataframe(points, TREND_COLUMNS, date_columns=["acquisition_month"])


def churn_tables(
    profiles: Sequence[ChurnProfile],
    reference_date: date,
    config: ChurnConfig = ChurnConfig(),
) -> Dict[str, pd.DataFrame]:
    """Convert churn profiles into every reporting table.

    Returns:
        Dictionary with keys:
        - 'churn_profiles': one row per customer
        - 'churn_summary': counts and revenue per status / risk segment
        - 'high_value_at_risk': slipping customers above the spend threshold
        - 'churn_features': normalized model features
        - 'churn_trend': churn rate by acquisition month with moving average
        - 'churn_action_plan': single-row headline counts
    """
    return {
        "churn_profiles": churn_profiles_to_dataframe(profiles),
        "churn_summary": churn_summary_to_dataframe(summarize_churn(profiles)),
        "high_value_at_risk": high_value_at_risk_to_dataframe(
            high_value_at_risk(profiles, config)
        ),
        "churn_features": churn_features_to_dataframe(build_churn_features(profiles)),
        "churn_trend": churn_trend_to_dataframe(
            monthly_churn_trend(profiles, reference_date, config)
        ),
        "churn_action_plan": dataclasses_to_dataframe(
            [churn_action_plan(profiles, config)], ACTION_PLAN_COLUMNS
        ),
    }


def calculate_churn_profiles_df(
    transactions_df: pd.DataFrame,
    reference_date: date,
    config: ChurnConfig = ChurnConfig(),
    customer_id_col: str = "customer_id",
    transaction_date_col: str = "transaction_date",
    amount_col: str = "amount",
) -> Dict[str, pd.DataFrame]:
    """Score churn risk on a transactions DataFrame.

    Example:
        >>> tables = calculate_churn_profiles_df(txns_df, date(2024, 6, 30))
        >>> tables['churn_profiles'].query("risk_segment == 'Critical Risk'")
    """
    transactions = dataframe_to_transactions(
        transactions_df,
        customer_id_col=customer_id_col,
        transaction_date_col=transaction_date_col,
        amount_col=amount_col,
    )
    profiles = calculate_churn_profiles(transactions, reference_date, config)
    return churn_tables(profiles, reference_date, config)
