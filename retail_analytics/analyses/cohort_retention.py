"""Monthly cohort retention analysis.

Customers are grouped by the calendar month of their first qualifying
purchase. Each cohort is then tracked month by month: how many of its
original members purchased again, and how much revenue the cohort produced
per original member.

Key outputs:
- Retention table: one row per (cohort_month, period_number)
- Pivot view: one row per cohort with ``month_0 .. month_11`` columns
- Average retention curve with month-over-month drop-off
- Revenue retention relative to each cohort's period 0
- Cohort performance ranking and seasonal rollups

Quick Start
-----------
>>> from retail_analytics.foundation.transactions import parse_transactions
>>> from retail_analytics.analyses.cohort_retention import calculate_cohort_retention
>>> txns = parse_transactions([
...     {"customer_id": "C1", "transaction_date": "2024-01-05", "amount": 50},
...     {"customer_id": "C2", "transaction_date": "2024-01-20", "amount": 30},
...     {"customer_id": "C1", "transaction_date": "2024-03-02", "amount": 25},
... ])
>>> result = calculate_cohort_retention(txns)
>>> [str(p.retention_rate) for p in result.cohorts[0].periods]
['100.00', '0.00', '50.00']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from retail_analytics.foundation._rounding import round_decimal
from retail_analytics.foundation.periods import month_start, months_between, quarter_of
from retail_analytics.foundation.transactions import (
    Transaction,
    qualifying_transactions,
)

logger = logging.getLogger(__name__)

# Periods (months after first purchase) reported as retention milestones.
MILESTONE_PERIODS = (1, 3, 6, 12)


@dataclass(frozen=True)
class CohortConfig:
    """Configuration for cohort retention views.

    Attributes
    ----------
    pivot_periods:
        Number of ``month_N`` columns in the pivot view (12 gives month_0..month_11).
    curve_max_period:
        Last period included in the average retention curve.
    ranking_period:
        Period whose retention ranks cohorts in :func:`rank_cohort_performance`.
    min_observed_period:
        Cohorts not yet observed for this many months are left out of the
        performance ranking.
    """

    pivot_periods: int = 12
    curve_max_period: int = 12
    ranking_period: int = 6
    min_observed_period: int = 3

    def __post_init__(self) -> None:
        if self.pivot_periods < 1:
            raise ValueError(f"pivot_periods must be >= 1, got {self.pivot_periods}")
        if self.curve_max_period < 0:
            raise ValueError(
                f"curve_max_period must be >= 0, got {self.curve_max_period}"
            )


@dataclass(frozen=True)
class CohortPeriod:
    """Activity of one cohort in one month after acquisition.

    Attributes
    ----------
    cohort_month:
        First day of the cohort's acquisition month.
    period_number:
        Months since the cohort month (0 = acquisition month).
    cohort_size:
        Customers in the cohort (fixed at creation).
    active_customers:
        Distinct cohort members with a qualifying purchase this month.
    retention_rate:
        ``active_customers / cohort_size * 100`` rounded to 2 decimals.
    transactions:
        Qualifying transaction rows from the cohort this month.
    cohort_revenue:
        Revenue from the cohort this month.
    revenue_per_original_customer:
        ``cohort_revenue / cohort_size`` rounded to 2 decimals.
    revenue_retention_rate:
        Revenue per original customer relative to period 0 (x100). None when
        the period-0 revenue is zero and the ratio is undefined.
    """

    cohort_month: date
    period_number: int
    cohort_size: int
    active_customers: int
    retention_rate: Decimal
    transactions: int
    cohort_revenue: Decimal
    revenue_per_original_customer: Decimal
    revenue_retention_rate: Optional[Decimal]

    def __post_init__(self) -> None:
        """Validate cohort period constraints."""
        if self.period_number < 0:
            raise ValueError(f"period_number must be >= 0, got {self.period_number}")
        if self.cohort_size <= 0:
            raise ValueError(f"cohort_size must be > 0, got {self.cohort_size}")
        if not 0 <= self.active_customers <= self.cohort_size:
            raise ValueError(
                f"active_customers must be in [0, {self.cohort_size}], got {self.active_customers}"
            )
        if not Decimal("0") <= self.retention_rate <= Decimal("100"):
            raise ValueError(
                f"retention_rate must be in [0, 100], got {self.retention_rate}"
            )
        if self.cohort_revenue < 0:
            raise ValueError(f"cohort_revenue must be >= 0, got {self.cohort_revenue}")


@dataclass(frozen=True)
class CohortRetention:
    """All tracked periods of a single cohort, ordered by period_number."""

    cohort_month: date
    cohort_size: int
    periods: tuple[CohortPeriod, ...]

    def __post_init__(self) -> None:
        period_numbers = [p.period_number for p in self.periods]
        expected = list(range(len(self.periods)))
        if period_numbers != expected:
            raise ValueError(
                f"period_numbers must be contiguous starting from 0. "
                f"Expected {expected}, got {period_numbers}"
            )

    def period(self, period_number: int) -> Optional[CohortPeriod]:
        """Return the period if it has been observed, else None."""
        if 0 <= period_number < len(self.periods):
            return self.periods[period_number]
        return None

    def retention_at(self, period_number: int) -> Optional[Decimal]:
        found = self.period(period_number)
        return found.retention_rate if found is not None else None

    @property
    def total_revenue(self) -> Decimal:
        return sum((p.cohort_revenue for p in self.periods), Decimal("0"))


@dataclass(frozen=True)
class CohortRetentionResult:
    """Cohort retention for a whole transaction set.

    Attributes
    ----------
    cohorts:
        One entry per cohort, ordered by cohort_month.
    observation_end_month:
        Last calendar month covered; every cohort is tracked up to it.
    assignments:
        Mapping of customer_id to cohort_month.
    """

    cohorts: tuple[CohortRetention, ...]
    observation_end_month: Optional[date]
    assignments: Mapping[str, date] = field(default_factory=dict)

    def rows(self) -> list[CohortPeriod]:
        """Flatten to the retention table (cohort_month, period_number order)."""
        return [period for cohort in self.cohorts for period in cohort.periods]


def assign_customer_cohorts(transactions: Sequence[Transaction]) -> dict[str, date]:
    """Map each customer to the month of their first qualifying purchase.

    >>> from retail_analytics.foundation.transactions import parse_transactions
    >>> assign_customer_cohorts(parse_transactions([
    ...     {"customer_id": "C1", "transaction_date": "2024-02-10", "amount": 10},
    ...     {"customer_id": "C1", "transaction_date": "2024-01-31", "amount": 10},
    ... ]))
    {'C1': datetime.date(2024, 1, 1)}
    """
    first_dates: dict[str, date] = {}
    for txn in qualifying_transactions(transactions):
        current = first_dates.get(txn.customer_id)
        if current is None or txn.transaction_date < current:
            first_dates[txn.customer_id] = txn.transaction_date
    return {cid: month_start(first) for cid, first in sorted(first_dates.items())}


def calculate_cohort_retention(
    transactions: Sequence[Transaction],
    config: CohortConfig = CohortConfig(),
    observation_end: Optional[date] = None,
) -> CohortRetentionResult:
    """Track monthly customer and revenue retention for every cohort.

    Parameters
    ----------
    transactions:
        The full transaction history. Non-positive amounts are dropped.
    config:
        Cohort view configuration.
    observation_end:
        Optional date whose month closes the observation window. Defaults to
        the month of the latest qualifying transaction. Must not precede it.

    Returns
    -------
    CohortRetentionResult
        Cohorts ordered by month. Every cohort carries contiguous periods
        from 0 to the observation end; months without any activity appear
        with zero active customers and zero revenue.

    Raises
    ------
    ValueError
        If ``observation_end`` falls before the latest transaction month.
    """
    qualifying = qualifying_transactions(transactions)
    if not qualifying:
        return CohortRetentionResult(cohorts=(), observation_end_month=None)

    assignments = assign_customer_cohorts(qualifying)

    last_month = month_start(max(t.transaction_date for t in qualifying))
    if observation_end is not None:
        end_month = month_start(observation_end)
        if end_month < last_month:
            raise ValueError(
                f"observation_end ({observation_end.isoformat()}) cannot be before the "
                f"latest transaction month ({last_month.isoformat()})"
            )
    else:
        end_month = last_month

    cohort_sizes: dict[date, int] = {}
    for cohort_month in assignments.values():
        cohort_sizes[cohort_month] = cohort_sizes.get(cohort_month, 0) + 1

    # (cohort_month, period_number) -> activity bucket
    buckets: dict[tuple[date, int], dict] = {}
    for txn in qualifying:
        cohort_month = assignments[txn.customer_id]
        period_number = months_between(cohort_month, txn.transaction_date)
        bucket = buckets.setdefault(
            (cohort_month, period_number),
            {"customers": set(), "transactions": 0, "revenue": Decimal("0")},
        )
        bucket["customers"].add(txn.customer_id)
        bucket["transactions"] += 1
        bucket["revenue"] += txn.amount

    cohorts: list[CohortRetention] = []
    for cohort_month in sorted(cohort_sizes):
        size = cohort_sizes[cohort_month]
        horizon = months_between(cohort_month, end_month)
        baseline = round_decimal(buckets[(cohort_month, 0)]["revenue"] / size)

        periods: list[CohortPeriod] = []
        for period_number in range(horizon + 1):
            bucket = buckets.get((cohort_month, period_number))
            active = len(bucket["customers"]) if bucket else 0
            revenue = bucket["revenue"] if bucket else Decimal("0")
            per_customer = round_decimal(revenue / size)
            revenue_retention = (
                round_decimal(per_customer * 100 / baseline) if baseline > 0 else None
            )
            periods.append(
                CohortPeriod(
                    cohort_month=cohort_month,
                    period_number=period_number,
                    cohort_size=size,
                    active_customers=active,
                    retention_rate=round_decimal(Decimal(active * 100) / size),
                    transactions=bucket["transactions"] if bucket else 0,
                    cohort_revenue=round_decimal(revenue),
                    revenue_per_original_customer=per_customer,
                    revenue_retention_rate=revenue_retention,
                )
            )
        cohorts.append(
            CohortRetention(
                cohort_month=cohort_month, cohort_size=size, periods=tuple(periods)
            )
        )

    logger.info(
        f"Built {len(cohorts)} monthly cohorts for {len(assignments)} customers "
        f"through {end_month.isoformat()}"
    )
    return CohortRetentionResult(
        cohorts=tuple(cohorts),
        observation_end_month=end_month,
        assignments=assignments,
    )


@dataclass(frozen=True)
class RetentionPivotRow:
    """Spreadsheet-style retention row: ``retention[i]`` is month_i (None if unobserved)."""

    cohort_month: date
    cohort_size: int
    retention: tuple[Optional[Decimal], ...]


def retention_pivot(
    result: CohortRetentionResult, config: CohortConfig = CohortConfig()
) -> list[RetentionPivotRow]:
    """Pivot retention rates to one row per cohort with a column per period."""
    return [
        RetentionPivotRow(
            cohort_month=cohort.cohort_month,
            cohort_size=cohort.cohort_size,
            retention=tuple(
                cohort.retention_at(n) for n in range(config.pivot_periods)
            ),
        )
        for cohort in result.cohorts
    ]


@dataclass(frozen=True)
class RetentionCurvePoint:
    """Average retention across cohorts at one period.

    ``retention_drop`` is the previous period's average minus this one
    (None for the first point).
    """

    period_number: int
    avg_retention_rate: Decimal
    cohorts_included: int
    retention_drop: Optional[Decimal]


def average_retention_curve(
    result: CohortRetentionResult, config: CohortConfig = CohortConfig()
) -> list[RetentionCurvePoint]:
    """Average retention per period over every cohort observed at that period."""
    points: list[RetentionCurvePoint] = []
    previous: Optional[Decimal] = None
    for period_number in range(config.curve_max_period + 1):
        rates = [
            rate
            for rate in (c.retention_at(period_number) for c in result.cohorts)
            if rate is not None
        ]
        if not rates:
            break
        average = round_decimal(sum(rates, Decimal("0")) / len(rates))
        points.append(
            RetentionCurvePoint(
                period_number=period_number,
                avg_retention_rate=average,
                cohorts_included=len(rates),
                retention_drop=previous - average if previous is not None else None,
            )
        )
        previous = average
    return points


@dataclass(frozen=True)
class CohortPerformance:
    """Milestone retention and revenue for a cohort with its ranks."""

    cohort_month: date
    cohort_size: int
    retention_3m: Optional[Decimal]
    retention_6m: Optional[Decimal]
    retention_12m: Optional[Decimal]
    total_cohort_revenue: Decimal
    avg_revenue_per_customer: Decimal
    retention_rank: int
    revenue_rank: int


def rank_cohort_performance(
    result: CohortRetentionResult, config: CohortConfig = CohortConfig()
) -> list[CohortPerformance]:
    """Rank cohorts by milestone retention and by revenue per customer.

    Both ranks are descending with ties broken by cohort_month ascending.
    Cohorts not yet observed at ``ranking_period`` rank after every cohort
    that has been. Cohorts younger than ``min_observed_period`` months are
    excluded. Rows are returned in cohort_month order.
    """
    eligible = [
        c for c in result.cohorts if c.period(config.min_observed_period) is not None
    ]

    def _retention_key(cohort: CohortRetention) -> tuple:
        rate = cohort.retention_at(config.ranking_period)
        return (rate is None, -(rate or Decimal("0")), cohort.cohort_month)

    def _avg_revenue(cohort: CohortRetention) -> Decimal:
        return round_decimal(cohort.total_revenue / cohort.cohort_size)

    retention_ranks = {
        c.cohort_month: rank
        for rank, c in enumerate(sorted(eligible, key=_retention_key), start=1)
    }
    revenue_ranks = {
        c.cohort_month: rank
        for rank, c in enumerate(
            sorted(eligible, key=lambda c: (-_avg_revenue(c), c.cohort_month)),
            start=1,
        )
    }

    return [
        CohortPerformance(
            cohort_month=c.cohort_month,
            cohort_size=c.cohort_size,
            retention_3m=c.retention_at(3),
            retention_6m=c.retention_at(6),
            retention_12m=c.retention_at(12),
            total_cohort_revenue=round_decimal(c.total_revenue),
            avg_revenue_per_customer=_avg_revenue(c),
            retention_rank=retention_ranks[c.cohort_month],
            revenue_rank=revenue_ranks[c.cohort_month],
        )
        for c in eligible
    ]


@dataclass(frozen=True)
class SeasonalRetention:
    """Average milestone retention for cohorts acquired in one calendar month."""

    cohort_quarter: int
    cohort_month_of_year: int
    cohorts_included: int
    retention_1m: Optional[Decimal]
    retention_3m: Optional[Decimal]
    retention_6m: Optional[Decimal]
    retention_12m: Optional[Decimal]


def _average_at(cohorts: Sequence[CohortRetention], period_number: int) -> Optional[Decimal]:
    rates = [
        rate for rate in (c.retention_at(period_number) for c in cohorts) if rate is not None
    ]
    if not rates:
        return None
    return round_decimal(sum(rates, Decimal("0")) / len(rates))


def seasonal_retention(result: CohortRetentionResult) -> list[SeasonalRetention]:
    """Average milestone retention grouped by acquisition quarter and month-of-year.

    Cohorts from different years acquired in the same calendar month are
    pooled, which exposes seasonality independent of cohort age.
    """
    grouped: dict[int, list[CohortRetention]] = {}
    for cohort in result.cohorts:
        grouped.setdefault(cohort.cohort_month.month, []).append(cohort)

    rows = []
    for month_of_year in sorted(grouped):
        members = grouped[month_of_year]
        milestones = [_average_at(members, n) for n in MILESTONE_PERIODS]
        if all(value is None for value in milestones):
            continue
        rows.append(
            SeasonalRetention(
                cohort_quarter=quarter_of(members[0].cohort_month),
                cohort_month_of_year=month_of_year,
                cohorts_included=len(members),
                retention_1m=milestones[0],
                retention_3m=milestones[1],
                retention_6m=milestones[2],
                retention_12m=milestones[3],
            )
        )
    return rows


@dataclass(frozen=True)
class RetentionSummary:
    """Headline retention figures across all cohorts."""

    total_cohorts_analyzed: int
    avg_1_month_retention: Optional[Decimal]
    avg_3_month_retention: Optional[Decimal]
    avg_6_month_retention: Optional[Decimal]
    avg_12_month_retention: Optional[Decimal]


def retention_executive_summary(result: CohortRetentionResult) -> RetentionSummary:
    averages = [_average_at(result.cohorts, n) for n in MILESTONE_PERIODS]
    return RetentionSummary(
        total_cohorts_analyzed=len(result.cohorts),
        avg_1_month_retention=averages[0],
        avg_3_month_retention=averages[1],
        avg_6_month_retention=averages[2],
        avg_12_month_retention=averages[3],
    )
