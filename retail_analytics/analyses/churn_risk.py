"""Churn risk scoring.

Classifies every customer by how long ago they last purchased (churn
status) and by a weighted heuristic risk score (risk segment), then derives
a capped churn probability, a recommended retention action and normalized
features for downstream modeling.

Business rules (defaults, see :class:`ChurnConfig`):
- Churned: no purchase in 90+ days
- At Risk: last purchase 45-89 days ago
- Declining: last purchase 15-44 days ago
- Active: purchase within the last 14 days

All day counts are measured against an explicit ``reference_date`` so the
computation is reproducible; nothing in this module reads the clock.

Quick Start
-----------
>>> from datetime import date
>>> from retail_analytics.foundation.transactions import parse_transactions
>>> from retail_analytics.analyses.churn_risk import calculate_churn_profiles
>>> txns = parse_transactions([
...     {"customer_id": "C1", "transaction_date": "2024-01-10", "amount": 100},
...     {"customer_id": "C1", "transaction_date": "2024-02-10", "amount": 100},
...     {"customer_id": "C1", "transaction_date": "2024-03-10", "amount": 100},
... ])
>>> profile = calculate_churn_profiles(txns, reference_date=date(2024, 3, 15))[0]
>>> profile.days_since_last_purchase, profile.churn_status
(5, 'Active')
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

import numpy as np

from retail_analytics.foundation._rounding import round_decimal, round_float
from retail_analytics.foundation.periods import add_months, month_start, month_range
from retail_analytics.foundation.transactions import (
    Transaction,
    qualifying_transactions,
)

logger = logging.getLogger(__name__)

ACTIVE = "Active"
DECLINING = "Declining"
AT_RISK = "At Risk"
CHURNED = "Churned"
CHURN_STATUSES = (ACTIVE, DECLINING, AT_RISK, CHURNED)

HEALTHY = "Healthy"
LOW_RISK = "Low Risk"
MEDIUM_RISK = "Medium Risk"
HIGH_RISK = "High Risk"
CRITICAL_RISK = "Critical Risk"
RISK_SEGMENTS = (HEALTHY, LOW_RISK, MEDIUM_RISK, HIGH_RISK, CRITICAL_RISK)

WIN_BACK = "Win-back campaign"
IMMEDIATE_INTERVENTION = "Immediate intervention"
RETENTION_CAMPAIGN = "Retention campaign"
ENGAGEMENT_INCREASE = "Engagement increase"
STANDARD_COMMUNICATION = "Standard communication"

# Risk segment -> action for customers that have not churned yet.
RISK_SEGMENT_ACTIONS = {
    CRITICAL_RISK: IMMEDIATE_INTERVENTION,
    HIGH_RISK: RETENTION_CAMPAIGN,
    MEDIUM_RISK: ENGAGEMENT_INCREASE,
}


@dataclass(frozen=True)
class ChurnConfig:
    """Business thresholds and weights for churn scoring.

    The defaults are the agreed business rules; override them only with
    product guidance.

    Attributes
    ----------
    churned_days, at_risk_days, declining_days:
        Lower bounds (inclusive) of the Churned, At Risk and Declining bands.
    recency_scale_days, recency_weight:
        Recency factor is ``days / recency_scale_days * recency_weight``
        (unbounded above).
    low_frequency_threshold, low_frequency_weight:
        Added when purchases per month fall below the threshold.
    low_value_threshold, low_value_weight:
        Added when the average transaction amount falls below the threshold.
    few_transactions_threshold, few_transactions_weight:
        Added when total transactions are at or below the threshold.
    few_active_months_threshold, few_active_months_weight:
        Added when active months are at or below the threshold.
    critical_threshold, high_threshold, medium_threshold, low_threshold:
        Minimum risk score for each risk segment.
    probability_cap:
        Upper bound of churn_probability; at most 0.999 so it stays below
        certainty after rounding to 3 dp.
    high_value_threshold, high_value_limit:
        Spend threshold and row limit for :func:`high_value_at_risk`.
    high_value_churned_threshold:
        Spend above which a churned customer counts as high value in
        :func:`churn_action_plan`.
    trend_lookback_months:
        Acquisition window of :func:`monthly_churn_trend`.
    """

    churned_days: int = 90
    at_risk_days: int = 45
    declining_days: int = 15
    recency_scale_days: int = 90
    recency_weight: float = 30.0
    low_frequency_threshold: float = 0.5
    low_frequency_weight: float = 20.0
    low_value_threshold: Decimal = Decimal("50")
    low_value_weight: float = 15.0
    few_transactions_threshold: int = 2
    few_transactions_weight: float = 25.0
    few_active_months_threshold: int = 2
    few_active_months_weight: float = 10.0
    critical_threshold: float = 70.0
    high_threshold: float = 50.0
    medium_threshold: float = 30.0
    low_threshold: float = 15.0
    probability_cap: float = 0.95
    high_value_threshold: Decimal = Decimal("500")
    high_value_limit: int = 100
    high_value_churned_threshold: Decimal = Decimal("1000")
    trend_lookback_months: int = 24

    def __post_init__(self) -> None:
        """Validate threshold ordering."""
        if not 0 < self.declining_days < self.at_risk_days < self.churned_days:
            raise ValueError(
                "Churn status thresholds must satisfy 0 < declining_days < at_risk_days "
                f"< churned_days, got {self.declining_days}/{self.at_risk_days}/{self.churned_days}"
            )
        if not (
            0 <= self.low_threshold
            <= self.medium_threshold
            <= self.high_threshold
            <= self.critical_threshold
        ):
            raise ValueError(
                "Risk segment thresholds must be non-decreasing from low to critical"
            )
        if self.recency_scale_days <= 0:
            raise ValueError(
                f"recency_scale_days must be positive, got {self.recency_scale_days}"
            )
        if not 0 <= self.probability_cap <= 0.999:
            raise ValueError(
                f"probability_cap must be in [0, 0.999], got {self.probability_cap}"
            )


@dataclass(frozen=True)
class ChurnProfile:
    """Behavior, churn status and risk tier for a single customer."""

    customer_id: str
    first_purchase_date: date
    last_purchase_date: date
    days_since_last_purchase: int
    customer_tenure_days: int
    total_transactions: int
    active_months: int
    total_spent: Decimal
    avg_transaction_amount: Decimal
    avg_order_value: Decimal
    purchase_frequency_per_month: float
    churn_status: str
    churn_risk_score: float
    risk_segment: str
    churn_probability: float
    recommended_action: str

    def __post_init__(self) -> None:
        """Validate churn profile constraints."""
        if self.days_since_last_purchase < 0:
            raise ValueError(
                f"days_since_last_purchase cannot be negative: {self.days_since_last_purchase} "
                f"(customer_id={self.customer_id})"
            )
        if self.customer_tenure_days < self.days_since_last_purchase:
            raise ValueError(
                f"customer_tenure_days ({self.customer_tenure_days}) cannot be less than "
                f"days_since_last_purchase ({self.days_since_last_purchase}) "
                f"(customer_id={self.customer_id})"
            )
        if self.total_transactions <= 0:
            raise ValueError(
                f"total_transactions must be positive: {self.total_transactions} "
                f"(customer_id={self.customer_id})"
            )
        if self.churn_status not in CHURN_STATUSES:
            raise ValueError(f"Unknown churn_status {self.churn_status!r}")
        if self.risk_segment not in RISK_SEGMENTS:
            raise ValueError(f"Unknown risk_segment {self.risk_segment!r}")
        if self.churn_risk_score < 0:
            raise ValueError(
                f"churn_risk_score cannot be negative: {self.churn_risk_score}"
            )
        if not 0 <= self.churn_probability < 1:
            raise ValueError(
                f"churn_probability must be in [0, 1), got {self.churn_probability}"
            )


def classify_churn_status(days_since_last_purchase: int, config: ChurnConfig = ChurnConfig()) -> str:
    """Map days since the last purchase to a churn status.

    >>> [classify_churn_status(d) for d in (14, 15, 44, 45, 89, 90)]
    ['Active', 'Declining', 'Declining', 'At Risk', 'At Risk', 'Churned']
    """
    if days_since_last_purchase >= config.churned_days:
        return CHURNED
    if days_since_last_purchase >= config.at_risk_days:
        return AT_RISK
    if days_since_last_purchase >= config.declining_days:
        return DECLINING
    return ACTIVE


def calculate_risk_score(
    days_since_last_purchase: int,
    purchase_frequency_per_month: float,
    avg_transaction_amount: Decimal,
    total_transactions: int,
    active_months: int,
    config: ChurnConfig = ChurnConfig(),
) -> float:
    """Sum the independent risk factors into a churn risk score.

    >>> calculate_risk_score(0, 1.0, Decimal("75"), 5, 4)
    0.0
    >>> calculate_risk_score(90, 0.2, Decimal("20"), 1, 1)
    100.0
    """
    score = days_since_last_purchase / config.recency_scale_days * config.recency_weight
    if purchase_frequency_per_month < config.low_frequency_threshold:
        score += config.low_frequency_weight
    if avg_transaction_amount < config.low_value_threshold:
        score += config.low_value_weight
    if total_transactions <= config.few_transactions_threshold:
        score += config.few_transactions_weight
    if active_months <= config.few_active_months_threshold:
        score += config.few_active_months_weight
    return score


def classify_risk_segment(churn_risk_score: float, config: ChurnConfig = ChurnConfig()) -> str:
    if churn_risk_score >= config.critical_threshold:
        return CRITICAL_RISK
    if churn_risk_score >= config.high_threshold:
        return HIGH_RISK
    if churn_risk_score >= config.medium_threshold:
        return MEDIUM_RISK
    if churn_risk_score >= config.low_threshold:
        return LOW_RISK
    return HEALTHY


def churn_probability(churn_risk_score: float, config: ChurnConfig = ChurnConfig()) -> float:
    """Convert a risk score to a probability capped below certainty."""
    return round_float(min(churn_risk_score / 100.0, config.probability_cap), 3)


def recommend_action(churn_status: str, risk_segment: str) -> str:
    """Pick the retention action; churn status takes precedence over risk."""
    if churn_status == CHURNED:
        return WIN_BACK
    return RISK_SEGMENT_ACTIONS.get(risk_segment, STANDARD_COMMUNICATION)


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def calculate_churn_profiles(
    transactions: Sequence[Transaction],
    reference_date: date,
    config: ChurnConfig = ChurnConfig(),
) -> list[ChurnProfile]:
    """Build a :class:`ChurnProfile` for every customer with a qualifying purchase.

    Parameters
    ----------
    transactions:
        The full transaction history. Non-positive amounts are dropped.
    reference_date:
        The "as of" date all day counts are measured against.
    config:
        Thresholds and weights.

    Returns
    -------
    list[ChurnProfile]
        Ordered by churn_risk_score descending, total_spent descending, then
        customer_id.

    Raises
    ------
    ValueError
        If any qualifying transaction is dated after ``reference_date``.
    """
    reference_date = _as_date(reference_date)
    qualifying = qualifying_transactions(transactions)

    customer_data: dict[str, dict] = {}
    for txn in qualifying:
        if txn.transaction_date > reference_date:
            raise ValueError(
                f"Transaction date ({txn.transaction_date.isoformat()}) cannot be after "
                f"reference_date ({reference_date.isoformat()}) for customer {txn.customer_id}"
            )
        data = customer_data.setdefault(
            txn.customer_id,
            {
                "first": txn.transaction_date,
                "last": txn.transaction_date,
                "dates": set(),
                "months": set(),
                "rows": 0,
                "total": Decimal("0"),
            },
        )
        data["first"] = min(data["first"], txn.transaction_date)
        data["last"] = max(data["last"], txn.transaction_date)
        data["dates"].add(txn.transaction_date)
        data["months"].add(month_start(txn.transaction_date))
        data["rows"] += 1
        data["total"] += txn.amount

    profiles: list[ChurnProfile] = []
    for cid, data in customer_data.items():
        days_since = (reference_date - data["last"]).days
        tenure = (reference_date - data["first"]).days
        total_transactions = len(data["dates"])
        active_months = len(data["months"])
        total_spent = data["total"]
        avg_amount = round_decimal(total_spent / data["rows"])
        # Same-day-only customers have zero tenure; clamp the divisor to one day.
        frequency = round_float(Decimal(total_transactions * 30) / max(tenure, 1))

        status = classify_churn_status(days_since, config)
        score = calculate_risk_score(
            days_since, frequency, avg_amount, total_transactions, active_months, config
        )
        segment = classify_risk_segment(score, config)
        profiles.append(
            ChurnProfile(
                customer_id=cid,
                first_purchase_date=data["first"],
                last_purchase_date=data["last"],
                days_since_last_purchase=days_since,
                customer_tenure_days=tenure,
                total_transactions=total_transactions,
                active_months=active_months,
                total_spent=round_decimal(total_spent),
                avg_transaction_amount=avg_amount,
                avg_order_value=round_decimal(total_spent / total_transactions),
                purchase_frequency_per_month=frequency,
                churn_status=status,
                churn_risk_score=score,
                risk_segment=segment,
                churn_probability=churn_probability(score, config),
                recommended_action=recommend_action(status, segment),
            )
        )

    profiles.sort(key=lambda p: p.customer_id)
    profiles.sort(key=lambda p: (p.churn_risk_score, p.total_spent), reverse=True)
    logger.info(
        f"Scored churn risk for {len(profiles)} customers as of {reference_date.isoformat()}"
    )
    return profiles


@dataclass(frozen=True)
class ChurnSegmentSummary:
    """Customers and revenue per (churn_status, risk_segment) pair."""

    churn_status: str
    risk_segment: str
    customer_count: int
    percentage: Decimal
    avg_total_spent: Decimal
    total_revenue_at_risk: Decimal
    avg_churn_probability: float
    avg_days_since_purchase: Decimal


def summarize_churn(profiles: Sequence[ChurnProfile]) -> list[ChurnSegmentSummary]:
    """Group profiles by status and risk segment, ordered by severity."""
    if not profiles:
        return []

    grouped: dict[tuple[str, str], list[ChurnProfile]] = {}
    for profile in profiles:
        grouped.setdefault((profile.churn_status, profile.risk_segment), []).append(profile)

    total = len(profiles)
    rows = []
    for (status, segment), members in grouped.items():
        count = len(members)
        spent = sum((p.total_spent for p in members), Decimal("0"))
        rows.append(
            ChurnSegmentSummary(
                churn_status=status,
                risk_segment=segment,
                customer_count=count,
                percentage=round_decimal(Decimal(count * 100) / total),
                avg_total_spent=round_decimal(spent / count),
                total_revenue_at_risk=round_decimal(spent),
                avg_churn_probability=round_float(
                    sum(p.churn_probability for p in members) / count, 3
                ),
                avg_days_since_purchase=round_decimal(
                    Decimal(sum(p.days_since_last_purchase for p in members)) / count, 1
                ),
            )
        )
    rows.sort(
        key=lambda r: (
            CHURN_STATUSES.index(r.churn_status),
            RISK_SEGMENTS.index(r.risk_segment),
        )
    )
    return rows


@dataclass(frozen=True)
class HighValueAtRisk:
    """A valuable customer who is slipping but not yet churned."""

    customer_id: str
    churn_status: str
    risk_segment: str
    total_spent: Decimal
    days_since_last_purchase: int
    churn_probability: float
    purchase_frequency_per_month: float
    recommended_action: str
    potential_revenue_loss: Decimal


def high_value_at_risk(
    profiles: Sequence[ChurnProfile],
    config: ChurnConfig = ChurnConfig(),
) -> list[HighValueAtRisk]:
    """List At Risk / Declining customers above the spend threshold.

    Ordered by potential revenue loss (``total_spent * churn_probability``)
    descending, then customer_id, truncated to ``config.high_value_limit``.
    """
    rows = [
        HighValueAtRisk(
            customer_id=p.customer_id,
            churn_status=p.churn_status,
            risk_segment=p.risk_segment,
            total_spent=p.total_spent,
            days_since_last_purchase=p.days_since_last_purchase,
            churn_probability=p.churn_probability,
            purchase_frequency_per_month=p.purchase_frequency_per_month,
            recommended_action=p.recommended_action,
            potential_revenue_loss=round_decimal(
                p.total_spent * Decimal(str(p.churn_probability))
            ),
        )
        for p in profiles
        if p.churn_status in (AT_RISK, DECLINING)
        and p.total_spent > config.high_value_threshold
    ]
    rows.sort(key=lambda r: (-r.potential_revenue_loss, r.customer_id))
    return rows[: config.high_value_limit]


@dataclass(frozen=True)
class ChurnFeatures:
    """Model-ready features for one customer.

    Z-scores are relative to the population passed to
    :func:`build_churn_features` and are None when that population has
    fewer than two members or no spread.
    """

    customer_id: str
    is_churned: int
    recency_zscore: Optional[float]
    frequency_zscore: Optional[float]
    monetary_zscore: Optional[float]
    tenure_zscore: Optional[float]
    total_transactions: int
    active_months: int
    avg_transaction_amount: Decimal
    transaction_frequency_interaction: float
    spend_rate: float


def zscores(values: Sequence[float]) -> list[Optional[float]]:
    """Standardize against the sample mean and standard deviation (3 dp).

    >>> zscores([1.0, 2.0, 3.0])
    [-1.0, 0.0, 1.0]
    >>> zscores([4.0, 4.0])
    [None, None]
    """
    arr = np.asarray(values, dtype=float)
    if arr.size < 2:
        return [None] * arr.size
    std = arr.std(ddof=1)
    if std == 0 or not np.isfinite(std):
        return [None] * arr.size
    mean = arr.mean()
    return [round_float((v - mean) / std, 3) for v in arr]


def build_churn_features(profiles: Sequence[ChurnProfile]) -> list[ChurnFeatures]:
    """Derive normalized features over exactly the given population.

    Means and deviations are computed on every call, so features from
    different runs or filtered populations are never mixed.
    """
    if not profiles:
        return []

    recency = zscores([p.days_since_last_purchase for p in profiles])
    frequency = zscores([p.purchase_frequency_per_month for p in profiles])
    monetary = zscores([float(p.total_spent) for p in profiles])
    tenure = zscores([p.customer_tenure_days for p in profiles])

    features = [
        ChurnFeatures(
            customer_id=p.customer_id,
            is_churned=1 if p.churn_status == CHURNED else 0,
            recency_zscore=recency[i],
            frequency_zscore=frequency[i],
            monetary_zscore=monetary[i],
            tenure_zscore=tenure[i],
            total_transactions=p.total_transactions,
            active_months=p.active_months,
            avg_transaction_amount=p.avg_transaction_amount,
            transaction_frequency_interaction=round_float(
                p.total_transactions * p.purchase_frequency_per_month
            ),
            spend_rate=round_float(p.total_spent / max(p.customer_tenure_days, 1), 4),
        )
        for i, p in enumerate(profiles)
    ]
    features.sort(key=lambda f: (-f.is_churned, f.customer_id))
    return features


@dataclass(frozen=True)
class ChurnTrendPoint:
    """Churn rate of customers acquired in one calendar month.

    ``churn_rate`` is None for months without acquisitions. The moving
    average covers this month and the two preceding calendar months,
    averaging whichever of them have a defined rate.
    """

    acquisition_month: date
    customers_acquired: int
    customers_churned: int
    churn_rate: Optional[Decimal]
    churn_rate_3month_avg: Optional[Decimal]


def _months_before(value: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the target month's length."""
    target = add_months(value, -months)
    last_day = calendar.monthrange(target.year, target.month)[1]
    return target.replace(day=min(value.day, last_day))


def monthly_churn_trend(
    profiles: Sequence[ChurnProfile],
    reference_date: date,
    config: ChurnConfig = ChurnConfig(),
) -> list[ChurnTrendPoint]:
    """Churn rate by acquisition month with a trailing 3-month average.

    Only customers whose first purchase falls within
    ``config.trend_lookback_months`` of ``reference_date`` are included.
    The series covers every calendar month between the first and last
    acquisition month so gaps stay visible.
    """
    cutoff = _months_before(_as_date(reference_date), config.trend_lookback_months)
    window = [p for p in profiles if p.first_purchase_date >= cutoff]
    if not window:
        return []

    acquired: dict[date, int] = {}
    churned: dict[date, int] = {}
    for profile in window:
        month = month_start(profile.first_purchase_date)
        acquired[month] = acquired.get(month, 0) + 1
        if profile.churn_status == CHURNED:
            churned[month] = churned.get(month, 0) + 1

    months = month_range(min(acquired), max(acquired))
    rates: list[Optional[Decimal]] = []
    for month in months:
        count = acquired.get(month, 0)
        rates.append(
            round_decimal(Decimal(churned.get(month, 0) * 100) / count) if count else None
        )

    points = []
    for i, month in enumerate(months):
        trailing = [r for r in rates[max(0, i - 2) : i + 1] if r is not None]
        moving = (
            round_decimal(sum(trailing, Decimal("0")) / len(trailing)) if trailing else None
        )
        points.append(
            ChurnTrendPoint(
                acquisition_month=month,
                customers_acquired=acquired.get(month, 0),
                customers_churned=churned.get(month, 0),
                churn_rate=rates[i],
                churn_rate_3month_avg=moving,
            )
        )
    return points


@dataclass(frozen=True)
class ChurnActionPlan:
    """Headline counts for planning churn prevention."""

    critical_risk_customers: int
    high_risk_customers: int
    revenue_at_risk: Decimal
    avg_churn_probability_active: Optional[float]
    high_value_churned: int


def churn_action_plan(
    profiles: Sequence[ChurnProfile], config: ChurnConfig = ChurnConfig()
) -> ChurnActionPlan:
    not_churned = [p.churn_probability for p in profiles if p.churn_status != CHURNED]
    return ChurnActionPlan(
        critical_risk_customers=sum(1 for p in profiles if p.risk_segment == CRITICAL_RISK),
        high_risk_customers=sum(1 for p in profiles if p.risk_segment == HIGH_RISK),
        revenue_at_risk=round_decimal(
            sum((p.total_spent for p in profiles if p.churn_status == AT_RISK), Decimal("0"))
        ),
        avg_churn_probability_active=(
            round_float(sum(not_churned) / len(not_churned), 3) if not_churned else None
        ),
        high_value_churned=sum(
            1
            for p in profiles
            if p.churn_status == CHURNED
            and p.total_spent > config.high_value_churned_threshold
        ),
    )
