"""Batch job orchestration for the retail analyses."""

from retail_analytics.jobs.runner import (
    ALL_COMPONENTS,
    AnalyticsJobRequest,
    AnalyticsJobResult,
    build_config,
    configure_logging,
    run_analytics_job,
)

__all__ = [
    "ALL_COMPONENTS",
    "AnalyticsJobRequest",
    "AnalyticsJobResult",
    "build_config",
    "configure_logging",
    "run_analytics_job",
]
