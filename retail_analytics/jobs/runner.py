"""Batch job that runs the selected analyses and exports their tables.

Each component (RFM, cohorts, churn) reads the same immutable list of
transactions and produces its own set of DataFrames, so components can run
concurrently in a thread pool without coordination.
"""

from __future__ import annotations

import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import fields
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Literal, Sequence

import pandas as pd
import structlog
from pydantic import BaseModel, Field

from retail_analytics.analyses.churn_risk import ChurnConfig, calculate_churn_profiles
from retail_analytics.analyses.cohort_retention import (
    CohortConfig,
    calculate_cohort_retention,
)
from retail_analytics.analyses.rfm_segments import (
    RFMConfig,
    calculate_customer_rfm,
    summarize_segments,
    top_customers_by_segment,
)
from retail_analytics.foundation.transactions import Transaction
from retail_analytics.pandas.churn import churn_tables
from retail_analytics.pandas.cohorts import cohort_tables
from retail_analytics.pandas.rfm import (
    customer_rfm_to_dataframe,
    segment_summary_to_dataframe,
    top_customers_to_dataframe,
)
from retail_analytics.reporting.exports import export_run_manifest_json, export_tables_csv

logger = structlog.get_logger(__name__)

Component = Literal["rfm", "cohorts", "churn"]
ALL_COMPONENTS: tuple[Component, ...] = ("rfm", "cohorts", "churn")
MANIFEST_NAME = "manifest.json"


def configure_logging(level: int = logging.INFO) -> None:
    """Send structured JSON logs to stderr so stdout stays free for output."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


class AnalyticsJobRequest(BaseModel):
    """Request to run one or more analyses over a transaction snapshot."""

    reference_date: date = Field(
        description="As-of date for churn scoring; no transaction may be later"
    )
    output_dir: Path = Field(description="Directory for the exported CSV tables")
    components: list[Component] = Field(
        default=list(ALL_COMPONENTS), description="Analyses to run"
    )
    parallel: bool = Field(
        default=False, description="Run the selected analyses in a thread pool"
    )
    observation_end: date | None = Field(
        default=None,
        description="Optional: extend cohort periods through this month "
        "(defaults to the last transaction month)",
    )
    rfm: dict[str, Any] = Field(
        default_factory=dict, description="RFMConfig overrides, e.g. {'top_limit': 20}"
    )
    cohorts: dict[str, Any] = Field(
        default_factory=dict, description="CohortConfig overrides"
    )
    churn: dict[str, Any] = Field(
        default_factory=dict,
        description="ChurnConfig overrides, e.g. {'churned_days': 120}",
    )


class AnalyticsJobResult(BaseModel):
    """Summary of a completed job."""

    reference_date: date
    components: list[str]
    row_counts: dict[str, int]
    files: dict[str, str]
    manifest_path: str
    duration_seconds: float


def build_config(config_cls: type, overrides: dict[str, Any]):
    """Instantiate a frozen config dataclass from JSON-friendly overrides.

    Values for fields whose default is a Decimal are converted through
    ``str`` so ``0.1`` stays ``Decimal("0.1")``; list values become tuples.

    Raises
    ------
    ValueError
        If an override names a field the config does not have, or the
        resulting config fails its own validation.
    """
    known = {f.name: f for f in fields(config_cls)}
    unknown = sorted(set(overrides) - set(known))
    if unknown:
        raise ValueError(f"Unknown {config_cls.__name__} options: {unknown}")

    kwargs = {}
    for name, value in overrides.items():
        default = known[name].default
        if isinstance(default, Decimal):
            value = Decimal(str(value))
        elif isinstance(default, tuple):
            value = tuple(value)
        kwargs[name] = value
    return config_cls(**kwargs)


def _run_rfm(transactions: Sequence[Transaction], config: RFMConfig) -> dict[str, pd.DataFrame]:
    customers = calculate_customer_rfm(transactions, config)
    logger.info("rfm_scored", customers=len(customers))
    return {
        "customer_rfm": customer_rfm_to_dataframe(customers),
        "segment_summary": segment_summary_to_dataframe(summarize_segments(customers)),
        "top_customers": top_customers_to_dataframe(
            top_customers_by_segment(customers, config=config)
        ),
    }


def _run_cohorts(
    transactions: Sequence[Transaction],
    config: CohortConfig,
    observation_end: date | None,
) -> dict[str, pd.DataFrame]:
    result = calculate_cohort_retention(transactions, config, observation_end)
    logger.info(
        "cohorts_computed",
        cohorts=len(result.cohorts),
        observation_end_month=(
            result.observation_end_month.isoformat()
            if result.observation_end_month
            else None
        ),
    )
    return cohort_tables(result, config)


def _run_churn(
    transactions: Sequence[Transaction],
    reference_date: date,
    config: ChurnConfig,
) -> dict[str, pd.DataFrame]:
    profiles = calculate_churn_profiles(transactions, reference_date, config)
    logger.info("churn_scored", customers=len(profiles))
    return churn_tables(profiles, reference_date, config)


def run_analytics_job(
    transactions: Sequence[Transaction],
    request: AnalyticsJobRequest,
) -> AnalyticsJobResult:
    """Run the requested analyses, export every table and write a manifest.

    Args:
        transactions: Parsed transactions (refunds included; each analysis
            filters to qualifying rows itself)
        request: Components, reference date, output directory and overrides

    Returns:
        Row counts and file paths per exported table

    Raises:
        ValueError: On invalid configuration overrides or input that an
            analysis rejects (e.g. transactions after the reference date)
    """
    started = time.perf_counter()
    components = list(dict.fromkeys(request.components))
    if not components:
        raise ValueError("At least one component must be selected")

    rfm_config = build_config(RFMConfig, request.rfm)
    cohort_config = build_config(CohortConfig, request.cohorts)
    churn_config = build_config(ChurnConfig, request.churn)

    tasks: dict[str, Callable[[], dict[str, pd.DataFrame]]] = {
        "rfm": lambda: _run_rfm(transactions, rfm_config),
        "cohorts": lambda: _run_cohorts(transactions, cohort_config, request.observation_end),
        "churn": lambda: _run_churn(transactions, request.reference_date, churn_config),
    }

    logger.info(
        "analytics_job_started",
        transactions=len(transactions),
        components=components,
        reference_date=request.reference_date.isoformat(),
        parallel=request.parallel,
    )

    if request.parallel and len(components) > 1:
        with ThreadPoolExecutor(max_workers=len(components)) as pool:
            futures = {name: pool.submit(tasks[name]) for name in components}
            outputs = {name: futures[name].result() for name in components}
    else:
        outputs = {name: tasks[name]() for name in components}

    tables: dict[str, pd.DataFrame] = {}
    for name in components:
        tables.update(outputs[name])

    written = export_tables_csv(tables, request.output_dir)
    manifest_path = export_run_manifest_json(
        Path(request.output_dir) / MANIFEST_NAME,
        tables,
        metadata={
            "reference_date": request.reference_date.isoformat(),
            "components": components,
            "transactions": len(transactions),
            "observation_end": (
                request.observation_end.isoformat() if request.observation_end else None
            ),
            "overrides": {
                "rfm": request.rfm,
                "cohorts": request.cohorts,
                "churn": request.churn,
            },
        },
    )

    duration = time.perf_counter() - started
    logger.info(
        "analytics_job_completed",
        tables=len(tables),
        output_dir=str(request.output_dir),
        duration_seconds=round(duration, 3),
    )

    return AnalyticsJobResult(
        reference_date=request.reference_date,
        components=components,
        row_counts={name: int(len(df)) for name, df in tables.items()},
        files={name: str(path) for name, path in written.items()},
        manifest_path=str(manifest_path),
        duration_seconds=duration,
    )
