from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
import json
import math
from pathlib import Path
import random
from typing import List, Optional, Sequence

from retail_analytics.foundation.periods import add_months, month_range
from retail_analytics.foundation.transactions import Transaction


@dataclass(frozen=True)
class Customer:
    customer_id: str
    acquisition_date: date


@dataclass(frozen=True)
class ScenarioConfig:
    """Configuration for the synthetic transaction generator.

    Attributes
    ----------
    promo_month: A calendar month (1-12) that sees higher purchase activity.
    promo_uplift: Multiplicative uplift for purchase propensity during promo month.
    churn_hazard: Monthly probability that an active customer stops buying.
    base_orders_per_month: Average purchases per active customer per month.
    mean_amount: Average purchase amount.
    amount_variability: Coefficient in (0, 1] controlling amount variance.
    refund_rate: Probability that a purchase is followed by a full refund row.
    seed: Optional RNG seed for reproducibility.
    """

    promo_month: Optional[int] = None
    promo_uplift: float = 1.5
    churn_hazard: float = 0.08
    base_orders_per_month: float = 1.2
    mean_amount: float = 60.0
    amount_variability: float = 0.5
    refund_rate: float = 0.03
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.promo_month is not None and not 1 <= self.promo_month <= 12:
            raise ValueError(f"promo_month must be in 1..12, got {self.promo_month}")
        if not 0 <= self.churn_hazard < 1:
            raise ValueError(f"churn_hazard must be in [0, 1), got {self.churn_hazard}")
        if not 0 <= self.refund_rate <= 1:
            raise ValueError(f"refund_rate must be in [0, 1], got {self.refund_rate}")
        if self.base_orders_per_month < 0:
            raise ValueError("base_orders_per_month must be non-negative")
        if self.mean_amount <= 0:
            raise ValueError("mean_amount must be positive")


def generate_customers(
    n: int,
    start: date,
    end: date,
    *,
    seed: Optional[int] = None,
) -> List[Customer]:
    """Generate ``n`` customers with acquisition dates uniformly between start/end."""

    if n <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")
    rng = random.Random(seed)
    total_days = (end - start).days + 1

    customers: List[Customer] = []
    for i in range(n):
        offset = rng.randrange(total_days)
        customers.append(
            Customer(customer_id=f"C-{i + 1:05d}", acquisition_date=start + timedelta(days=offset))
        )
    return customers


def _orders_for_customer_month(rng: random.Random, lam: float) -> int:
    # Knuth's Poisson draw; fine for the small rates used here
    if lam <= 0:
        return 0
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while p > limit:
        k += 1
        p *= rng.random()
    return max(0, k - 1)


def _sample_amount(rng: random.Random, mean: float, variability: float) -> Decimal:
    sigma = min(max(variability, 0.01), 1.0)
    mu = math.log(mean) - 0.5 * sigma * sigma
    amount = math.exp(rng.normalvariate(mu, sigma))
    return Decimal(str(round(max(amount, 0.01), 2)))


def generate_transactions(
    customers: Sequence[Customer],
    start: date,
    end: date,
    *,
    scenario: Optional[ScenarioConfig] = None,
) -> List[Transaction]:
    """Generate purchases (and occasional refunds) between ``start`` and ``end``.

    Every customer buys on their acquisition date, so the acquisition month
    is also their cohort month. After that, each month an active customer
    either churns (``churn_hazard``) or places a Poisson number of orders.
    Refunds are emitted as negative-amount rows a few days after the
    purchase they reverse, never later than ``end``.
    """

    if start > end:
        raise ValueError("start date must be <= end date")
    scenario = scenario or ScenarioConfig()
    rng = random.Random(scenario.seed)

    transactions: List[Transaction] = []

    def _purchase(customer_id: str, day: date) -> None:
        amount = _sample_amount(rng, scenario.mean_amount, scenario.amount_variability)
        transactions.append(
            Transaction(customer_id=customer_id, transaction_date=day, amount=amount)
        )
        if rng.random() < scenario.refund_rate:
            refund_day = min(day + timedelta(days=rng.randrange(1, 8)), end)
            transactions.append(
                Transaction(customer_id=customer_id, transaction_date=refund_day, amount=-amount)
            )

    for cust in customers:
        if cust.acquisition_date > end or cust.acquisition_date < start:
            continue
        _purchase(cust.customer_id, cust.acquisition_date)

        for month in month_range(add_months(cust.acquisition_date, 1), end):
            if rng.random() < scenario.churn_hazard:
                break
            multiplier = (
                scenario.promo_uplift if scenario.promo_month == month.month else 1.0
            )
            num_orders = _orders_for_customer_month(
                rng, scenario.base_orders_per_month * multiplier
            )
            last_day = min(add_months(month, 1) - timedelta(days=1), end)
            for _ in range(num_orders):
                day = month + timedelta(days=rng.randrange((last_day - month).days + 1))
                _purchase(cust.customer_id, day)

    transactions.sort(key=lambda t: (t.customer_id, t.transaction_date, t.amount))
    return transactions


def write_transactions_json(transactions: Sequence[Transaction], path: str | Path) -> Path:
    """Write transactions as the JSON list accepted by ``load_transactions``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [
        {
            "customer_id": t.customer_id,
            "transaction_date": t.transaction_date.isoformat(),
            "amount": str(t.amount),
        }
        for t in transactions
    ]
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
    return path
