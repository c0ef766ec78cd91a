"""Integration tests for the retail-analytics command line.

Tests the complete workflow from a raw transaction file through the CLI to
the exported CSV tables and manifest.
"""

import json
from datetime import date

import pandas as pd
import pytest

from retail_analytics.cli import main


@pytest.fixture
def sample_transactions_json(tmp_path):
    """Create a sample transactions JSON file for testing."""
    transactions = [
        # C1: loyal repeat buyer
        {"customer_id": "C1", "transaction_date": "2024-01-10", "amount": 120.0},
        {"customer_id": "C1", "transaction_date": "2024-02-12", "amount": 80.0},
        {"customer_id": "C1", "transaction_date": "2024-05-30", "amount": 150.0},
        # C2: one-time buyer with a refund
        {"customer_id": "C2", "transaction_date": "2024-01-25", "amount": 45.0},
        {"customer_id": "C2", "transaction_date": "2024-01-28", "amount": -45.0},
        # C3: moderate repeat buyer
        {"customer_id": "C3", "transaction_date": "2024-02-05", "amount": 60.0},
        {"customer_id": "C3", "transaction_date": "2024-04-18", "amount": 75.0},
        # C4: new in May
        {"customer_id": "C4", "transaction_date": "2024-05-02", "amount": 300.0},
    ]
    path = tmp_path / "transactions.json"
    path.write_text(json.dumps(transactions))
    return path


class TestRunCommand:
    """Test the multi-component run command."""

    def test_run_all_components(self, sample_transactions_json, tmp_path, capsys):
        output_dir = tmp_path / "reports"

        exit_code = main(
            [
                "run",
                str(sample_transactions_json),
                "--output-dir",
                str(output_dir),
                "--reference-date",
                "2024-06-30",
            ]
        )

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["reference_date"] == "2024-06-30"
        assert summary["row_counts"]["customer_rfm"] == 4
        assert (output_dir / "manifest.json").exists()

        churn = pd.read_csv(output_dir / "churn_profiles.csv")
        assert set(churn["customer_id"]) == {"C1", "C2", "C3", "C4"}
        c2 = churn[churn["customer_id"] == "C2"].iloc[0]
        assert c2["days_since_last_purchase"] == 157
        assert c2["churn_status"] == "Churned"

    def test_selected_components_in_parallel(self, sample_transactions_json, tmp_path):
        output_dir = tmp_path / "reports"

        exit_code = main(
            [
                "run",
                str(sample_transactions_json),
                "--output-dir",
                str(output_dir),
                "--reference-date",
                "2024-06-30",
                "--component",
                "rfm",
                "--component",
                "cohorts",
                "--parallel",
            ]
        )

        assert exit_code == 0
        assert (output_dir / "customer_rfm.csv").exists()
        assert (output_dir / "retention_pivot.csv").exists()
        assert not (output_dir / "churn_profiles.csv").exists()

    def test_config_file_overrides(self, sample_transactions_json, tmp_path):
        config_path = tmp_path / "job.json"
        config_path.write_text(
            json.dumps(
                {
                    "reference_date": "2024-06-30",
                    "components": ["churn"],
                    "churn": {"churned_days": 200, "at_risk_days": 100, "declining_days": 30},
                }
            )
        )
        output_dir = tmp_path / "reports"

        exit_code = main(
            [
                "run",
                str(sample_transactions_json),
                "--output-dir",
                str(output_dir),
                "--config",
                str(config_path),
            ]
        )

        assert exit_code == 0
        churn = pd.read_csv(output_dir / "churn_profiles.csv")
        c2 = churn[churn["customer_id"] == "C2"].iloc[0]
        assert c2["churn_status"] == "At Risk"

    def test_default_reference_date_is_today(self, tmp_path, caplog):
        path = tmp_path / "transactions.json"
        path.write_text(
            json.dumps(
                [{"customer_id": "C1", "transaction_date": "2020-01-01", "amount": 10}]
            )
        )

        with caplog.at_level("INFO", logger="retail_analytics.cli"):
            exit_code = main(["churn", str(path), "--output-dir", str(tmp_path / "out")])

        assert exit_code == 0
        assert f"using today ({date.today().isoformat()})" in caplog.text


class TestSingleComponentCommands:
    def test_cohorts_with_observation_end(self, sample_transactions_json, tmp_path):
        output_dir = tmp_path / "reports"

        exit_code = main(
            [
                "cohorts",
                str(sample_transactions_json),
                "--output-dir",
                str(output_dir),
                "--reference-date",
                "2024-06-30",
                "--observation-end",
                "2024-08-31",
            ]
        )

        assert exit_code == 0
        retention = pd.read_csv(output_dir / "cohort_retention.csv")
        jan = retention[retention["cohort_month"] == "2024-01-01"]
        assert list(jan["period_number"]) == list(range(8))
        assert not (output_dir / "customer_rfm.csv").exists()

    def test_rfm_command(self, sample_transactions_json, tmp_path):
        output_dir = tmp_path / "reports"

        exit_code = main(
            [
                "rfm",
                str(sample_transactions_json),
                "--output-dir",
                str(output_dir),
                "--reference-date",
                "2024-06-30",
            ]
        )

        assert exit_code == 0
        rfm = pd.read_csv(output_dir / "customer_rfm.csv")
        assert list(rfm["customer_id"]) == ["C1", "C4", "C3", "C2"]


class TestErrorHandling:
    """Invalid input is reported with a non-zero exit code."""

    def test_malformed_row_returns_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps(
                [
                    {"customer_id": "C1", "transaction_date": "2024-01-10", "amount": 10},
                    {"customer_id": "C2", "transaction_date": "not-a-date", "amount": 10},
                ]
            )
        )

        exit_code = main(
            ["run", str(path), "--output-dir", str(tmp_path / "out"), "--reference-date", "2024-06-30"]
        )

        assert exit_code == 1

    def test_missing_input_file_returns_error(self, tmp_path):
        exit_code = main(
            [
                "run",
                str(tmp_path / "missing.json"),
                "--output-dir",
                str(tmp_path / "out"),
                "--reference-date",
                "2024-06-30",
            ]
        )
        assert exit_code == 1

    def test_reference_date_before_transactions_returns_error(
        self, sample_transactions_json, tmp_path
    ):
        exit_code = main(
            [
                "churn",
                str(sample_transactions_json),
                "--output-dir",
                str(tmp_path / "out"),
                "--reference-date",
                "2024-03-01",
            ]
        )
        assert exit_code == 1

    def test_invalid_reference_date_exits_with_usage_error(
        self, sample_transactions_json, tmp_path
    ):
        with pytest.raises(SystemExit) as excinfo:
            main(
                [
                    "run",
                    str(sample_transactions_json),
                    "--output-dir",
                    str(tmp_path / "out"),
                    "--reference-date",
                    "30/06/2024",
                ]
            )
        assert excinfo.value.code == 2


class TestGenerateCommand:
    def test_generated_file_feeds_run(self, tmp_path):
        data_path = tmp_path / "synthetic.json"

        assert (
            main(
                [
                    "generate",
                    str(data_path),
                    "--customers",
                    "40",
                    "--start",
                    "2024-01-01",
                    "--end",
                    "2024-06-30",
                    "--seed",
                    "3",
                ]
            )
            == 0
        )
        assert (
            main(
                [
                    "run",
                    str(data_path),
                    "--output-dir",
                    str(tmp_path / "out"),
                    "--reference-date",
                    "2024-06-30",
                ]
            )
            == 0
        )
        assert len(pd.read_csv(tmp_path / "out" / "customer_rfm.csv")) == 40
