"""RFM scoring and rule-based customer segmentation.

RFM analysis segments customers based on three dimensions:
- Recency: days between the customer's last purchase and the latest
  purchase anywhere in the data set
- Frequency: number of distinct days the customer purchased on
- Monetary: total amount the customer spent

Each dimension is scored into quintiles (1-5, where 5 is best), the three
scores are concatenated into an RFM code (e.g. ``"455"``) and an ordered
list of business rules maps the scores to a marketing segment.

Quick Start
-----------
>>> from retail_analytics.foundation.transactions import parse_transactions
>>> from retail_analytics.analyses.rfm_segments import calculate_customer_rfm
>>> txns = parse_transactions([
...     {"customer_id": "C1", "transaction_date": "2024-01-10", "amount": 100},
...     {"customer_id": "C2", "transaction_date": "2024-03-01", "amount": 40},
... ])
>>> [c.rfm_code for c in calculate_customer_rfm(txns)]
['112', '221']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Sequence

from retail_analytics.foundation._rounding import round_decimal
from retail_analytics.foundation.quintiles import ntile
from retail_analytics.foundation.transactions import (
    Transaction,
    qualifying_transactions,
)

logger = logging.getLogger(__name__)

CHAMPIONS = "Champions"
LOYAL_CUSTOMERS = "Loyal Customers"
NEW_CUSTOMERS = "New Customers"
POTENTIAL_LOYALISTS = "Potential Loyalists"
AT_RISK = "At Risk"
LOST_CUSTOMERS = "Lost Customers"
CANNOT_LOSE_THEM = "Cannot Lose Them"
PROMISING = "Promising"
OTHERS = "Others"

SegmentRule = tuple[str, Callable[[int, int, int], bool]]

# Evaluated top to bottom; the first matching rule wins.
SEGMENT_RULES: tuple[SegmentRule, ...] = (
    (CHAMPIONS, lambda r, f, m: r >= 4 and f >= 4 and m >= 4),
    (LOYAL_CUSTOMERS, lambda r, f, m: r >= 3 and f >= 3 and m >= 3),
    (NEW_CUSTOMERS, lambda r, f, m: r >= 4 and f <= 2),
    (POTENTIAL_LOYALISTS, lambda r, f, m: r >= 3 and f >= 3 and m <= 2),
    (AT_RISK, lambda r, f, m: r <= 2 and f >= 3),
    (LOST_CUSTOMERS, lambda r, f, m: r <= 2 and f <= 2 and m <= 2),
    (CANNOT_LOSE_THEM, lambda r, f, m: r <= 2 and f <= 2 and m >= 3),
    (PROMISING, lambda r, f, m: r >= 3 and f <= 2 and m <= 2),
)

SEGMENT_LABELS: tuple[str, ...] = tuple(label for label, _ in SEGMENT_RULES) + (
    OTHERS,
)


@dataclass(frozen=True)
class RFMConfig:
    """Configuration for RFM scoring.

    Attributes
    ----------
    bins:
        Number of rank buckets per dimension. Fixed at 5 because the
        segment rules are written for a 1-5 score scale.
    clv_horizon_days:
        Numerator of the purchase-cycle multiplier in the CLV estimate.
    clv_multiplier:
        Flat multiplier applied to the CLV estimate.
    top_segments:
        Segments listed by :func:`top_customers_by_segment` by default.
    top_limit:
        Maximum rows returned by :func:`top_customers_by_segment`.
    """

    bins: int = 5
    clv_horizon_days: int = 365
    clv_multiplier: Decimal = Decimal("2")
    top_segments: tuple[str, ...] = (CHAMPIONS, LOYAL_CUSTOMERS, CANNOT_LOSE_THEM)
    top_limit: int = 50

    def __post_init__(self) -> None:
        if self.bins != 5:
            raise ValueError(f"bins must be 5 (segment rules use a 1-5 scale), got {self.bins}")
        if self.top_limit < 0:
            raise ValueError(f"top_limit must be >= 0, got {self.top_limit}")
        unknown = set(self.top_segments) - set(SEGMENT_LABELS)
        if unknown:
            raise ValueError(f"Unknown segment labels in top_segments: {sorted(unknown)}")


@dataclass(frozen=True)
class CustomerRFM:
    """RFM metrics, scores and segment for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    recency_days:
        Days between the data set's latest purchase and this customer's latest
    frequency:
        Distinct purchase dates
    monetary_value:
        Total spend across qualifying transactions
    last_purchase_date:
        Date of the customer's latest qualifying transaction
    recency_score, frequency_score, monetary_score:
        Quintile scores (1-5, 5 = best)
    rfm_code:
        Concatenated scores, e.g. ``"455"``
    segment:
        One of :data:`SEGMENT_LABELS`
    estimated_clv:
        ``monetary_value * (365 / recency_days) * 2``; None when
        ``recency_days`` is 0 and the estimate is undefined
    """

    customer_id: str
    recency_days: int
    frequency: int
    monetary_value: Decimal
    last_purchase_date: date
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_code: str
    segment: str
    estimated_clv: Optional[Decimal]

    def __post_init__(self) -> None:
        """Validate RFM invariants."""
        if self.recency_days < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency_days} (customer_id={self.customer_id})"
            )
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary_value < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary_value} (customer_id={self.customer_id})"
            )
        for score_name, score_value in [
            ("recency_score", self.recency_score),
            ("frequency_score", self.frequency_score),
            ("monetary_score", self.monetary_score),
        ]:
            if not 1 <= score_value <= 5:
                raise ValueError(
                    f"{score_name} must be between 1 and 5: {score_value} (customer_id={self.customer_id})"
                )
        expected_code = f"{self.recency_score}{self.frequency_score}{self.monetary_score}"
        if self.rfm_code != expected_code:
            raise ValueError(
                f"rfm_code ({self.rfm_code}) does not match r/f/m scores ({expected_code}) (customer_id={self.customer_id})"
            )
        if self.segment not in SEGMENT_LABELS:
            raise ValueError(f"Unknown segment {self.segment!r} (customer_id={self.customer_id})")

    @property
    def clv_defined(self) -> bool:
        return self.estimated_clv is not None


def classify_segment(
    recency_score: int,
    frequency_score: int,
    monetary_score: int,
    rules: Sequence[SegmentRule] = SEGMENT_RULES,
) -> str:
    """Return the label of the first rule matching the scores.

    >>> classify_segment(5, 5, 5)
    'Champions'
    >>> classify_segment(4, 1, 1)
    'New Customers'
    >>> classify_segment(3, 2, 3)
    'Others'
    """
    for label, predicate in rules:
        if predicate(recency_score, frequency_score, monetary_score):
            return label
    return OTHERS


def estimate_clv(
    monetary_value: Decimal, recency_days: int, config: RFMConfig = RFMConfig()
) -> Optional[Decimal]:
    """Estimate CLV from spend and recency; None when recency is zero."""
    if recency_days == 0:
        return None
    cycles = Decimal(config.clv_horizon_days) / Decimal(recency_days)
    return round_decimal(monetary_value * cycles * config.clv_multiplier)


def calculate_customer_rfm(
    transactions: Sequence[Transaction], config: RFMConfig = RFMConfig()
) -> list[CustomerRFM]:
    """Compute one :class:`CustomerRFM` row per customer with a qualifying purchase.

    Parameters
    ----------
    transactions:
        The full transaction history. Non-positive amounts are dropped.
    config:
        Scoring configuration.

    Returns
    -------
    list[CustomerRFM]
        Sorted by monetary_value descending, then customer_id.

    Notes
    -----
    Recency is measured against the latest qualifying transaction in the
    whole data set, not against a wall-clock date, so re-running on the
    same input always yields the same output.
    """
    qualifying = qualifying_transactions(transactions)
    if not qualifying:
        return []

    customer_data: dict[str, dict] = {}
    for txn in qualifying:
        data = customer_data.setdefault(
            txn.customer_id,
            {
                "last_purchase_date": txn.transaction_date,
                "dates": set(),
                "monetary_value": Decimal("0"),
            },
        )
        if txn.transaction_date > data["last_purchase_date"]:
            data["last_purchase_date"] = txn.transaction_date
        data["dates"].add(txn.transaction_date)
        data["monetary_value"] += txn.amount

    dataset_last_date = max(d["last_purchase_date"] for d in customer_data.values())

    recency = {
        cid: (dataset_last_date - d["last_purchase_date"]).days
        for cid, d in customer_data.items()
    }
    frequency = {cid: len(d["dates"]) for cid, d in customer_data.items()}
    monetary = {cid: d["monetary_value"] for cid, d in customer_data.items()}

    # Recency ranked oldest first so the most recent customers land in bucket 5.
    r_scores = ntile(recency, config.bins, descending=True)
    f_scores = ntile(frequency, config.bins)
    m_scores = ntile(monetary, config.bins)

    results: list[CustomerRFM] = []
    for cid, data in customer_data.items():
        r, f, m = r_scores[cid], f_scores[cid], m_scores[cid]
        results.append(
            CustomerRFM(
                customer_id=cid,
                recency_days=recency[cid],
                frequency=frequency[cid],
                monetary_value=round_decimal(monetary[cid]),
                last_purchase_date=data["last_purchase_date"],
                recency_score=r,
                frequency_score=f,
                monetary_score=m,
                rfm_code=f"{r}{f}{m}",
                segment=classify_segment(r, f, m),
                estimated_clv=estimate_clv(monetary[cid], recency[cid], config),
            )
        )

    undefined_clv = sum(1 for c in results if c.estimated_clv is None)
    if undefined_clv:
        logger.warning(
            f"estimated_clv undefined for {undefined_clv} customers with recency_days=0"
        )

    results.sort(key=lambda c: c.customer_id)
    results.sort(key=lambda c: c.monetary_value, reverse=True)
    logger.info(f"Scored {len(results)} customers into RFM segments")
    return results


@dataclass(frozen=True)
class SegmentSummary:
    """Aggregate statistics for one RFM segment.

    ``avg_clv`` averages only the customers whose CLV is defined and is None
    when no customer in the segment has one; ``marketing_priority_score``
    (``avg_clv * customer_count / 1000``) follows it.
    """

    segment: str
    customer_count: int
    percentage_of_customers: Decimal
    avg_recency: Decimal
    avg_frequency: Decimal
    avg_monetary: Decimal
    total_revenue: Decimal
    percentage_of_revenue: Decimal
    avg_clv: Optional[Decimal]
    marketing_priority_score: Optional[Decimal]


def summarize_segments(customers: Sequence[CustomerRFM]) -> list[SegmentSummary]:
    """Aggregate customers per segment, sorted by total revenue descending."""
    if not customers:
        return []

    total_count = len(customers)
    total_revenue = sum((c.monetary_value for c in customers), Decimal("0"))

    grouped: dict[str, list[CustomerRFM]] = {}
    for customer in customers:
        grouped.setdefault(customer.segment, []).append(customer)

    summaries: list[SegmentSummary] = []
    for segment, members in grouped.items():
        count = len(members)
        revenue = sum((c.monetary_value for c in members), Decimal("0"))
        clvs = [c.estimated_clv for c in members if c.estimated_clv is not None]
        avg_clv = round_decimal(sum(clvs, Decimal("0")) / len(clvs)) if clvs else None
        priority = (
            round_decimal(avg_clv * count / Decimal(1000)) if avg_clv is not None else None
        )
        revenue_pct = (
            round_decimal(revenue * 100 / total_revenue, 1)
            if total_revenue > 0
            else Decimal("0.0")
        )
        summaries.append(
            SegmentSummary(
                segment=segment,
                customer_count=count,
                percentage_of_customers=round_decimal(Decimal(count * 100) / total_count, 1),
                avg_recency=round_decimal(
                    Decimal(sum(c.recency_days for c in members)) / count, 1
                ),
                avg_frequency=round_decimal(
                    Decimal(sum(c.frequency for c in members)) / count, 1
                ),
                avg_monetary=round_decimal(revenue / count),
                total_revenue=round_decimal(revenue),
                percentage_of_revenue=revenue_pct,
                avg_clv=avg_clv,
                marketing_priority_score=priority,
            )
        )

    summaries.sort(key=lambda s: s.segment)
    summaries.sort(key=lambda s: s.total_revenue, reverse=True)
    return summaries


@dataclass(frozen=True)
class SegmentTopCustomer:
    """A customer ranked by spend within its segment (RANK semantics)."""

    segment: str
    customer_id: str
    recency_days: int
    frequency: int
    monetary_value: Decimal
    rfm_code: str
    segment_rank: int


def top_customers_by_segment(
    customers: Sequence[CustomerRFM],
    segments: Optional[Sequence[str]] = None,
    limit: Optional[int] = None,
    config: RFMConfig = RFMConfig(),
) -> list[SegmentTopCustomer]:
    """List the highest-spending customers of the high-value segments.

    Customers are ranked within their segment by monetary value; ties share
    a rank and the following rank is skipped. Rows are ordered by segment
    name, rank and customer_id, then truncated to ``limit``.
    """
    wanted = set(config.top_segments if segments is None else segments)
    limit = config.top_limit if limit is None else limit

    grouped: dict[str, list[CustomerRFM]] = {}
    for customer in customers:
        if customer.segment in wanted:
            grouped.setdefault(customer.segment, []).append(customer)

    rows: list[SegmentTopCustomer] = []
    for segment in sorted(grouped):
        members = sorted(
            grouped[segment], key=lambda c: (-c.monetary_value, c.customer_id)
        )
        rank = 0
        previous: Optional[Decimal] = None
        for position, customer in enumerate(members, start=1):
            if customer.monetary_value != previous:
                rank = position
                previous = customer.monetary_value
            rows.append(
                SegmentTopCustomer(
                    segment=segment,
                    customer_id=customer.customer_id,
                    recency_days=customer.recency_days,
                    frequency=customer.frequency,
                    monetary_value=customer.monetary_value,
                    rfm_code=customer.rfm_code,
                    segment_rank=rank,
                )
            )
    return rows[:limit]
