"""Tests for the batch analytics job runner."""

import json
from datetime import date
from decimal import Decimal

import pandas as pd
import pytest
from pydantic import ValidationError

from retail_analytics.analyses.churn_risk import ChurnConfig
from retail_analytics.analyses.rfm_segments import RFMConfig
from retail_analytics.jobs import (
    AnalyticsJobRequest,
    build_config,
    run_analytics_job,
)
from retail_analytics.synthetic import (
    ScenarioConfig,
    generate_customers,
    generate_transactions,
)

REFERENCE = date(2024, 6, 30)


@pytest.fixture(scope="module")
def transactions():
    """A reproducible synthetic history of 60 customers."""
    customers = generate_customers(60, date(2023, 1, 1), date(2024, 3, 31), seed=11)
    return generate_transactions(
        customers,
        date(2023, 1, 1),
        REFERENCE,
        scenario=ScenarioConfig(seed=11, refund_rate=0.1),
    )


class TestBuildConfig:
    """Test JSON override conversion into frozen configs."""

    def test_defaults_without_overrides(self):
        assert build_config(ChurnConfig, {}) == ChurnConfig()

    def test_decimal_and_tuple_fields_are_converted(self):
        config = build_config(
            RFMConfig, {"clv_multiplier": 1.5, "top_segments": ["Champions"]}
        )
        assert config.clv_multiplier == Decimal("1.5")
        assert config.top_segments == ("Champions",)

    def test_unknown_option_raises(self):
        with pytest.raises(ValueError, match="Unknown ChurnConfig options"):
            build_config(ChurnConfig, {"churn_days": 120})

    def test_config_validation_still_applies(self):
        with pytest.raises(ValueError, match="Churn status thresholds"):
            build_config(ChurnConfig, {"declining_days": 50})


class TestAnalyticsJobRequest:
    def test_defaults_to_all_components(self, tmp_path):
        request = AnalyticsJobRequest(reference_date=REFERENCE, output_dir=tmp_path)
        assert request.components == ["rfm", "cohorts", "churn"]
        assert request.parallel is False

    def test_rejects_unknown_component(self, tmp_path):
        with pytest.raises(ValidationError):
            AnalyticsJobRequest(
                reference_date=REFERENCE, output_dir=tmp_path, components=["forecast"]
            )

    def test_parses_iso_strings(self, tmp_path):
        request = AnalyticsJobRequest.model_validate(
            {"reference_date": "2024-06-30", "output_dir": str(tmp_path)}
        )
        assert request.reference_date == REFERENCE


class TestRunAnalyticsJob:
    """Test end-to-end job execution."""

    def test_exports_all_tables(self, transactions, tmp_path):
        request = AnalyticsJobRequest(reference_date=REFERENCE, output_dir=tmp_path)

        result = run_analytics_job(transactions, request)

        assert result.components == ["rfm", "cohorts", "churn"]
        expected = {
            "customer_rfm",
            "segment_summary",
            "top_customers",
            "cohort_retention",
            "retention_pivot",
            "retention_curve",
            "cohort_performance",
            "seasonal_retention",
            "retention_summary",
            "churn_profiles",
            "churn_summary",
            "high_value_at_risk",
            "churn_features",
            "churn_trend",
            "churn_action_plan",
        }
        assert set(result.files) == expected
        assert all((tmp_path / f"{name}.csv").exists() for name in expected)

        rfm = pd.read_csv(tmp_path / "customer_rfm.csv")
        assert len(rfm) == result.row_counts["customer_rfm"] == 60
        assert rfm["recency_score"].between(1, 5).all()

        manifest = json.loads((tmp_path / "manifest.json").read_text())
        assert manifest["metadata"]["reference_date"] == "2024-06-30"
        assert manifest["tables"]["churn_profiles"]["rows"] == 60

    def test_parallel_matches_serial(self, transactions, tmp_path):
        serial = run_analytics_job(
            transactions,
            AnalyticsJobRequest(reference_date=REFERENCE, output_dir=tmp_path / "serial"),
        )
        parallel = run_analytics_job(
            transactions,
            AnalyticsJobRequest(
                reference_date=REFERENCE, output_dir=tmp_path / "parallel", parallel=True
            ),
        )

        assert serial.row_counts == parallel.row_counts
        for name in serial.files:
            assert (tmp_path / "serial" / f"{name}.csv").read_text() == (
                tmp_path / "parallel" / f"{name}.csv"
            ).read_text()

    def test_single_component(self, transactions, tmp_path):
        result = run_analytics_job(
            transactions,
            AnalyticsJobRequest(
                reference_date=REFERENCE, output_dir=tmp_path, components=["rfm"]
            ),
        )

        assert set(result.files) == {"customer_rfm", "segment_summary", "top_customers"}
        assert not (tmp_path / "churn_profiles.csv").exists()

    def test_overrides_are_applied(self, transactions, tmp_path):
        result = run_analytics_job(
            transactions,
            AnalyticsJobRequest(
                reference_date=REFERENCE,
                output_dir=tmp_path,
                components=["rfm", "cohorts"],
                rfm={"top_limit": 1},
                cohorts={"pivot_periods": 6},
            ),
        )

        assert result.row_counts["top_customers"] <= 1
        pivot = pd.read_csv(tmp_path / "retention_pivot.csv")
        assert list(pivot.columns)[-1] == "month_5"

    def test_invalid_override_raises_before_running(self, transactions, tmp_path):
        with pytest.raises(ValueError, match="Unknown RFMConfig options"):
            run_analytics_job(
                transactions,
                AnalyticsJobRequest(
                    reference_date=REFERENCE, output_dir=tmp_path, rfm={"quintiles": 4}
                ),
            )
        assert not (tmp_path / "manifest.json").exists()

    def test_out_of_range_bins_override_raises_before_running(self, transactions, tmp_path):
        with pytest.raises(ValueError, match="bins must be 5"):
            run_analytics_job(
                transactions,
                AnalyticsJobRequest(
                    reference_date=REFERENCE, output_dir=tmp_path, rfm={"bins": 10}
                ),
            )
        assert not (tmp_path / "manifest.json").exists()

    def test_reference_date_before_data_raises(self, transactions, tmp_path):
        with pytest.raises(ValueError, match="cannot be after reference_date"):
            run_analytics_job(
                transactions,
                AnalyticsJobRequest(
                    reference_date=date(2023, 6, 30),
                    output_dir=tmp_path,
                    components=["churn"],
                ),
            )

    def test_empty_component_list_raises(self, transactions, tmp_path):
        with pytest.raises(ValueError, match="At least one component"):
            run_analytics_job(
                transactions,
                AnalyticsJobRequest(reference_date=REFERENCE, output_dir=tmp_path, components=[]),
            )
