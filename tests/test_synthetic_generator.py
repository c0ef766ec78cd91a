"""Tests for the synthetic transaction generator."""

from datetime import date
from decimal import Decimal
import json

import pytest

from retail_analytics.foundation.transactions import load_transactions
from retail_analytics.synthetic import (
    ScenarioConfig,
    generate_customers,
    generate_transactions,
    write_transactions_json,
)

START = date(2024, 1, 1)
END = date(2024, 12, 31)


class TestGenerateCustomers:
    def test_count_ids_and_dates(self):
        customers = generate_customers(25, START, END, seed=1)

        assert len(customers) == 25
        assert len({c.customer_id for c in customers}) == 25
        assert all(START <= c.acquisition_date <= END for c in customers)

    def test_non_positive_count(self):
        assert generate_customers(0, START, END) == []

    def test_invalid_range(self):
        with pytest.raises(ValueError, match="start date must be <= end date"):
            generate_customers(5, END, START)


class TestGenerateTransactions:
    """Test transaction generation behavior."""

    def test_reproducible_with_seed(self):
        customers = generate_customers(30, START, END, seed=5)
        first = generate_transactions(customers, START, END, scenario=ScenarioConfig(seed=5))
        second = generate_transactions(customers, START, END, scenario=ScenarioConfig(seed=5))
        assert first == second

    def test_every_customer_buys_on_acquisition_date(self):
        customers = generate_customers(30, START, END, seed=2)
        txns = generate_transactions(customers, START, END, scenario=ScenarioConfig(seed=2))

        for customer in customers:
            first = min(
                t.transaction_date
                for t in txns
                if t.customer_id == customer.customer_id and t.amount > 0
            )
            assert first == customer.acquisition_date

    def test_dates_stay_in_range(self):
        customers = generate_customers(50, START, END, seed=3)
        txns = generate_transactions(
            customers, START, END, scenario=ScenarioConfig(seed=3, refund_rate=0.5)
        )
        assert all(START <= t.transaction_date <= END for t in txns)

    def test_refunds_mirror_purchases(self):
        customers = generate_customers(50, START, END, seed=4)
        txns = generate_transactions(
            customers, START, END, scenario=ScenarioConfig(seed=4, refund_rate=1.0)
        )

        refunds = [t for t in txns if t.amount < 0]
        purchases = [t for t in txns if t.amount > 0]
        assert len(refunds) == len(purchases)
        assert sum(t.amount for t in txns) == Decimal("0")

    def test_full_churn_hazard_leaves_only_first_purchase(self):
        customers = generate_customers(20, START, END, seed=6)
        txns = generate_transactions(
            customers,
            START,
            END,
            scenario=ScenarioConfig(seed=6, churn_hazard=0.999999, refund_rate=0.0),
        )
        assert len(txns) <= 20 + 1

    def test_invalid_scenario(self):
        with pytest.raises(ValueError, match="churn_hazard"):
            ScenarioConfig(churn_hazard=1.0)
        with pytest.raises(ValueError, match="promo_month"):
            ScenarioConfig(promo_month=13)


class TestWriteTransactionsJson:
    def test_output_loads_back(self, tmp_path):
        customers = generate_customers(10, START, END, seed=8)
        txns = generate_transactions(customers, START, END, scenario=ScenarioConfig(seed=8))

        path = write_transactions_json(txns, tmp_path / "data" / "txns.json")

        assert isinstance(json.loads(path.read_text()), list)
        assert load_transactions(path) == txns
