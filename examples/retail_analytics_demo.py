"""Walk through the three retail analyses on synthetic data.

This script demonstrates:
1. RFM segmentation with segment summary and top customers
2. Monthly cohort retention (pivot view and average curve)
3. Churn risk scoring with the action plan

Run with: python examples/retail_analytics_demo.py
"""

from datetime import date

from retail_analytics.analyses import (
    average_retention_curve,
    calculate_churn_profiles,
    calculate_cohort_retention,
    calculate_customer_rfm,
    churn_action_plan,
    summarize_churn,
    summarize_segments,
    top_customers_by_segment,
)
from retail_analytics.pandas.cohorts import retention_pivot_to_dataframe
from retail_analytics.analyses.cohort_retention import retention_pivot
from retail_analytics.synthetic import (
    ScenarioConfig,
    generate_customers,
    generate_transactions,
)

START = date(2023, 1, 1)
END = date(2024, 6, 30)


def demo_rfm(transactions):
    print("\n" + "=" * 80)
    print("DEMO 1: RFM segmentation")
    print("=" * 80)

    customers = calculate_customer_rfm(transactions)
    for summary in summarize_segments(customers):
        print(
            f"{summary.segment:<20} {summary.customer_count:>5} customers "
            f"({summary.percentage_of_customers}%), revenue {summary.total_revenue}"
        )

    print("\nTop customers:")
    for row in top_customers_by_segment(customers, limit=5):
        print(f"  {row.segment:<16} #{row.segment_rank} {row.customer_id} {row.monetary_value}")


def demo_cohorts(transactions):
    print("\n" + "=" * 80)
    print("DEMO 2: Cohort retention")
    print("=" * 80)

    result = calculate_cohort_retention(transactions)
    pivot = retention_pivot_to_dataframe(retention_pivot(result))
    print(pivot[["cohort_month", "cohort_size", "month_0", "month_1", "month_3"]].head(6))

    print("\nAverage retention curve:")
    for point in average_retention_curve(result)[:7]:
        print(
            f"  month {point.period_number:>2}: {point.avg_retention_rate}% "
            f"across {point.cohorts_included} cohorts"
        )


def demo_churn(transactions):
    print("\n" + "=" * 80)
    print("DEMO 3: Churn risk")
    print("=" * 80)

    profiles = calculate_churn_profiles(transactions, reference_date=END)
    for row in summarize_churn(profiles):
        print(
            f"{row.churn_status:<10} {row.risk_segment:<14} {row.customer_count:>5} "
            f"({row.percentage}%)"
        )

    plan = churn_action_plan(profiles)
    print(
        f"\nCritical: {plan.critical_risk_customers}, High: {plan.high_risk_customers}, "
        f"revenue at risk: {plan.revenue_at_risk}"
    )


def main():
    customers = generate_customers(400, START, date(2024, 3, 31), seed=42)
    transactions = generate_transactions(
        customers, START, END, scenario=ScenarioConfig(seed=42, promo_month=11)
    )
    print(f"Generated {len(transactions)} transactions for {len(customers)} customers")

    demo_rfm(transactions)
    demo_cohorts(transactions)
    demo_churn(transactions)


if __name__ == "__main__":
    main()
