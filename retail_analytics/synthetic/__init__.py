"""Synthetic data generation utilities.

This package produces realistic-but-fake transaction histories to exercise
the retail analyses without accessing production data.
"""

from .generator import (
    Customer,
    ScenarioConfig,
    generate_customers,
    generate_transactions,
    write_transactions_json,
)

__all__ = [
    "Customer",
    "ScenarioConfig",
    "generate_customers",
    "generate_transactions",
    "write_transactions_json",
]
