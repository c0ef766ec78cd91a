"""Tests for monthly cohort retention analysis."""

from datetime import date
from decimal import Decimal

import pytest

from retail_analytics.analyses.cohort_retention import (
    CohortConfig,
    CohortPeriod,
    CohortRetention,
    assign_customer_cohorts,
    average_retention_curve,
    calculate_cohort_retention,
    rank_cohort_performance,
    retention_executive_summary,
    retention_pivot,
    seasonal_retention,
)
from retail_analytics.foundation.transactions import parse_transactions
from retail_analytics.synthetic import (
    ScenarioConfig,
    generate_customers,
    generate_transactions,
)

JAN = date(2024, 1, 1)
FEB = date(2024, 2, 1)


@pytest.fixture
def transactions():
    """Two cohorts (January: C1, C2; February: C3) observed through April."""
    return parse_transactions(
        [
            {"customer_id": "C1", "transaction_date": "2024-01-05", "amount": 50},
            {"customer_id": "C1", "transaction_date": "2024-03-02", "amount": 25},
            {"customer_id": "C2", "transaction_date": "2024-01-20", "amount": 30},
            {"customer_id": "C2", "transaction_date": "2024-02-01", "amount": -30},
            {"customer_id": "C3", "transaction_date": "2024-02-10", "amount": 40},
            {"customer_id": "C3", "transaction_date": "2024-02-15", "amount": 10},
            {"customer_id": "C3", "transaction_date": "2024-04-01", "amount": 20},
        ]
    )


class TestAssignCustomerCohorts:
    def test_first_qualifying_month(self, transactions):
        assert assign_customer_cohorts(transactions) == {"C1": JAN, "C2": JAN, "C3": FEB}

    def test_refund_before_first_purchase_does_not_set_cohort(self):
        txns = parse_transactions(
            [
                {"customer_id": "C1", "transaction_date": "2023-12-20", "amount": -10},
                {"customer_id": "C1", "transaction_date": "2024-01-05", "amount": 10},
            ]
        )
        assert assign_customer_cohorts(txns) == {"C1": JAN}


class TestCalculateCohortRetention:
    """Test the retention table."""

    def test_cohorts_and_sizes(self, transactions):
        result = calculate_cohort_retention(transactions)

        assert [c.cohort_month for c in result.cohorts] == [JAN, FEB]
        assert [c.cohort_size for c in result.cohorts] == [2, 1]
        assert result.observation_end_month == date(2024, 4, 1)

    def test_empty_months_are_zero_filled(self, transactions):
        """January is tracked through April even though February and April are empty."""
        jan = calculate_cohort_retention(transactions).cohorts[0]

        assert [p.period_number for p in jan.periods] == [0, 1, 2, 3]
        assert [p.active_customers for p in jan.periods] == [2, 0, 1, 0]
        assert [p.retention_rate for p in jan.periods] == [
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("50.00"),
            Decimal("0.00"),
        ]
        assert jan.periods[1].cohort_revenue == Decimal("0.00")
        assert jan.periods[1].transactions == 0

    def test_revenue_retention(self, transactions):
        jan, feb = calculate_cohort_retention(transactions).cohorts

        assert jan.periods[0].cohort_revenue == Decimal("80.00")
        assert jan.periods[0].revenue_per_original_customer == Decimal("40.00")
        assert jan.periods[0].revenue_retention_rate == Decimal("100.00")
        assert jan.periods[2].revenue_per_original_customer == Decimal("12.50")
        assert jan.periods[2].revenue_retention_rate == Decimal("31.25")

        assert feb.periods[0].transactions == 2
        assert feb.periods[0].cohort_revenue == Decimal("50.00")
        assert feb.periods[2].revenue_retention_rate == Decimal("40.00")

    def test_revenue_retention_uses_reported_per_customer_values(self):
        """The rate is recomputable from the rounded per-customer columns."""
        txns = parse_transactions(
            [
                {"customer_id": "A", "transaction_date": "2024-01-03", "amount": 100},
                {"customer_id": "B", "transaction_date": "2024-01-04", "amount": "0.01"},
                {"customer_id": "C", "transaction_date": "2024-01-05", "amount": "0.01"},
                {"customer_id": "A", "transaction_date": "2024-02-03", "amount": 50},
            ]
        )

        (jan,) = calculate_cohort_retention(txns).cohorts

        assert jan.cohort_size == 3
        assert jan.periods[0].revenue_per_original_customer == Decimal("33.34")
        assert jan.periods[1].revenue_per_original_customer == Decimal("16.67")
        assert jan.periods[1].revenue_retention_rate == Decimal("50.00")

    def test_period_zero_is_always_one_hundred(self):
        customers = generate_customers(80, date(2023, 1, 1), date(2023, 12, 31), seed=7)
        txns = generate_transactions(
            customers,
            date(2023, 1, 1),
            date(2024, 6, 30),
            scenario=ScenarioConfig(seed=7),
        )

        result = calculate_cohort_retention(txns)

        assert result.cohorts
        for cohort in result.cohorts:
            assert cohort.periods[0].retention_rate == Decimal("100.00")
            assert cohort.periods[0].revenue_retention_rate == Decimal("100.00")
            assert cohort.periods[-1].cohort_month == cohort.cohort_month
            assert len(cohort.periods) == (
                (result.observation_end_month.year - cohort.cohort_month.year) * 12
                + result.observation_end_month.month
                - cohort.cohort_month.month
                + 1
            )

    def test_observation_end_extends_periods(self, transactions):
        result = calculate_cohort_retention(
            transactions, observation_end=date(2024, 6, 15)
        )
        jan = result.cohorts[0]

        assert result.observation_end_month == date(2024, 6, 1)
        assert len(jan.periods) == 6
        assert jan.periods[5].retention_rate == Decimal("0.00")

    def test_observation_end_before_data_raises(self, transactions):
        with pytest.raises(ValueError, match="cannot be before"):
            calculate_cohort_retention(transactions, observation_end=date(2024, 3, 31))

    def test_rows_flatten_in_order(self, transactions):
        rows = calculate_cohort_retention(transactions).rows()
        assert [(r.cohort_month, r.period_number) for r in rows] == [
            (JAN, 0),
            (JAN, 1),
            (JAN, 2),
            (JAN, 3),
            (FEB, 0),
            (FEB, 1),
            (FEB, 2),
        ]

    def test_empty_input(self):
        result = calculate_cohort_retention([])
        assert result.cohorts == ()
        assert result.observation_end_month is None


class TestCohortValidation:
    def test_periods_must_be_contiguous(self):
        period = CohortPeriod(
            cohort_month=JAN,
            period_number=1,
            cohort_size=1,
            active_customers=1,
            retention_rate=Decimal("100"),
            transactions=1,
            cohort_revenue=Decimal("10"),
            revenue_per_original_customer=Decimal("10"),
            revenue_retention_rate=None,
        )
        with pytest.raises(ValueError, match="contiguous"):
            CohortRetention(cohort_month=JAN, cohort_size=1, periods=(period,))

    def test_active_customers_cannot_exceed_size(self):
        with pytest.raises(ValueError, match="active_customers"):
            CohortPeriod(
                cohort_month=JAN,
                period_number=0,
                cohort_size=1,
                active_customers=2,
                retention_rate=Decimal("100"),
                transactions=2,
                cohort_revenue=Decimal("10"),
                revenue_per_original_customer=Decimal("10"),
                revenue_retention_rate=Decimal("100"),
            )


class TestRetentionViews:
    """Test pivot, curve, ranking, seasonal and summary views."""

    def test_pivot_marks_unobserved_periods_none(self, transactions):
        jan, feb = retention_pivot(calculate_cohort_retention(transactions))

        assert len(jan.retention) == 12
        assert jan.retention[:5] == (
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("50.00"),
            Decimal("0.00"),
            None,
        )
        assert feb.retention[:4] == (
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("100.00"),
            None,
        )

    def test_average_curve(self, transactions):
        points = average_retention_curve(calculate_cohort_retention(transactions))

        assert [p.period_number for p in points] == [0, 1, 2, 3]
        assert [p.avg_retention_rate for p in points] == [
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("75.00"),
            Decimal("0.00"),
        ]
        assert [p.cohorts_included for p in points] == [2, 2, 2, 1]
        assert points[0].retention_drop is None
        assert points[1].retention_drop == Decimal("100.00")
        assert points[2].retention_drop == Decimal("-75.00")

    def test_performance_excludes_young_cohorts(self, transactions):
        rows = rank_cohort_performance(calculate_cohort_retention(transactions))

        assert [r.cohort_month for r in rows] == [JAN]
        assert rows[0].retention_3m == Decimal("0.00")
        assert rows[0].retention_6m is None
        assert rows[0].total_cohort_revenue == Decimal("105.00")
        assert rows[0].avg_revenue_per_customer == Decimal("52.50")

    def test_performance_ranks(self, transactions):
        config = CohortConfig(ranking_period=2, min_observed_period=2)

        rows = {
            r.cohort_month: r
            for r in rank_cohort_performance(calculate_cohort_retention(transactions), config)
        }

        assert rows[FEB].retention_rank == 1
        assert rows[JAN].retention_rank == 2
        assert rows[FEB].revenue_rank == 1
        assert rows[JAN].revenue_rank == 2

    def test_unobserved_ranking_period_ranks_last(self, transactions):
        config = CohortConfig(ranking_period=3, min_observed_period=0)

        rows = {
            r.cohort_month: r
            for r in rank_cohort_performance(calculate_cohort_retention(transactions), config)
        }

        assert rows[JAN].retention_rank == 1
        assert rows[FEB].retention_rank == 2

    def test_seasonal_retention(self, transactions):
        rows = seasonal_retention(calculate_cohort_retention(transactions))

        assert [(r.cohort_quarter, r.cohort_month_of_year) for r in rows] == [(1, 1), (1, 2)]
        assert rows[0].retention_1m == Decimal("0.00")
        assert rows[0].retention_3m == Decimal("0.00")
        assert rows[1].retention_3m is None
        assert rows[1].retention_12m is None

    def test_executive_summary(self, transactions):
        summary = retention_executive_summary(calculate_cohort_retention(transactions))

        assert summary.total_cohorts_analyzed == 2
        assert summary.avg_1_month_retention == Decimal("0.00")
        assert summary.avg_3_month_retention == Decimal("0.00")
        assert summary.avg_6_month_retention is None
