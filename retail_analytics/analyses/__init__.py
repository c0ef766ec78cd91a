"""Retail customer analyses.

Three independent batch computations over the shared transaction relation:

1. RFM Scorer - quintile scores, rule-based segments and estimated CLV
2. Cohort Retention Analyzer - first-purchase-month cohorts and their
   customer and revenue retention
3. Churn Risk Scorer - churn status, weighted risk score and model features
"""

from .churn_risk import (
    ChurnConfig,
    ChurnFeatures,
    ChurnProfile,
    build_churn_features,
    calculate_churn_profiles,
    churn_action_plan,
    high_value_at_risk,
    monthly_churn_trend,
    summarize_churn,
)
from .cohort_retention import (
    CohortConfig,
    CohortPeriod,
    CohortRetention,
    CohortRetentionResult,
    assign_customer_cohorts,
    average_retention_curve,
    calculate_cohort_retention,
    rank_cohort_performance,
    retention_executive_summary,
    retention_pivot,
    seasonal_retention,
)
from .rfm_segments import (
    SEGMENT_LABELS,
    SEGMENT_RULES,
    CustomerRFM,
    RFMConfig,
    SegmentSummary,
    calculate_customer_rfm,
    classify_segment,
    summarize_segments,
    top_customers_by_segment,
)

__all__ = [
    # RFM
    "SEGMENT_LABELS",
    "SEGMENT_RULES",
    "CustomerRFM",
    "RFMConfig",
    "SegmentSummary",
    "calculate_customer_rfm",
    "classify_segment",
    "summarize_segments",
    "top_customers_by_segment",
    # Cohorts
    "CohortConfig",
    "CohortPeriod",
    "CohortRetention",
    "CohortRetentionResult",
    "assign_customer_cohorts",
    "average_retention_curve",
    "calculate_cohort_retention",
    "rank_cohort_performance",
    "retention_executive_summary",
    "retention_pivot",
    "seasonal_retention",
    # Churn
    "ChurnConfig",
    "ChurnFeatures",
    "ChurnProfile",
    "build_churn_features",
    "calculate_churn_profiles",
    "churn_action_plan",
    "high_value_at_risk",
    "monthly_churn_trend",
    "summarize_churn",
]
