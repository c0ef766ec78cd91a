"""Command line entry points for the retail analytics toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Sequence

from retail_analytics.foundation.transactions import MAX_INPUT_BYTES, load_transactions
from retail_analytics.jobs.runner import (
    ALL_COMPONENTS,
    AnalyticsJobRequest,
    configure_logging,
    run_analytics_job,
)
from retail_analytics.synthetic.generator import (
    ScenarioConfig,
    generate_customers,
    generate_transactions,
    write_transactions_json,
)

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}; expected YYYY-MM-DD")


def _load_config(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    resolved = path.resolve()
    if resolved.stat().st_size > MAX_INPUT_BYTES:
        raise ValueError(f"Config file {resolved} exceeds limit of {MAX_INPUT_BYTES} bytes")
    with resolved.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError(f"Config file {resolved} must contain a JSON object")
    return payload


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "input", type=Path, help="Path to JSON or CSV file with transactions"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory for the exported CSV tables and manifest",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional JSON file with job settings and rfm/cohorts/churn overrides",
    )
    parser.add_argument(
        "--reference-date",
        type=_parse_date,
        help="As-of date for churn scoring (ISO format: YYYY-MM-DD). Defaults to today.",
    )
    parser.add_argument(
        "--observation-end",
        type=_parse_date,
        help="Track cohorts through this month (defaults to the last transaction month)",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retail-analytics",
        description="RFM segmentation, cohort retention and churn risk scoring",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run one or more analyses")
    _add_common_arguments(run)
    run.add_argument(
        "--component",
        dest="components",
        action="append",
        choices=list(ALL_COMPONENTS),
        help="Analyses to run (repeatable; defaults to all three)",
    )
    run.add_argument(
        "--parallel",
        action="store_true",
        help="Run the selected analyses concurrently",
    )

    for name, help_text in (
        ("rfm", "Score RFM segments and estimated CLV"),
        ("cohorts", "Compute monthly cohort retention"),
        ("churn", "Score churn risk"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        _add_common_arguments(sub)
        sub.set_defaults(components=[name], parallel=False)

    generate = subparsers.add_parser(
        "generate", help="Write a synthetic transaction file for demos and tests"
    )
    generate.add_argument("output", type=Path, help="Path for the JSON transactions file")
    generate.add_argument("--customers", type=int, default=500)
    generate.add_argument("--start", type=_parse_date, default=date(2023, 1, 1))
    generate.add_argument("--end", type=_parse_date, default=date(2024, 12, 31))
    generate.add_argument("--churn-hazard", type=float, default=0.08)
    generate.add_argument("--refund-rate", type=float, default=0.03)
    generate.add_argument("--seed", type=int, default=42)
    generate.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _run_command(args: argparse.Namespace) -> int:
    payload = _load_config(args.config)
    payload["output_dir"] = str(args.output_dir)
    if args.components:
        payload["components"] = args.components
    payload.setdefault("components", list(ALL_COMPONENTS))
    if args.parallel:
        payload["parallel"] = True
    if args.observation_end is not None:
        payload["observation_end"] = args.observation_end.isoformat()
    if args.reference_date is not None:
        payload["reference_date"] = args.reference_date.isoformat()
    elif "reference_date" not in payload:
        today = date.today()
        payload["reference_date"] = today.isoformat()
        logger.info(f"No reference date given; using today ({today.isoformat()})")

    request = AnalyticsJobRequest.model_validate(payload)

    logger.info(f"Loading transactions from {args.input}")
    transactions = load_transactions(args.input)
    if not transactions:
        logger.error("No transactions found in input file")
        return 1

    result = run_analytics_job(transactions, request)
    json.dump(result.model_dump(mode="json"), fp=sys.stdout, indent=2, sort_keys=True)
    print()
    return 0


def _generate_command(args: argparse.Namespace) -> int:
    customers = generate_customers(args.customers, args.start, args.end, seed=args.seed)
    scenario = ScenarioConfig(
        churn_hazard=args.churn_hazard, refund_rate=args.refund_rate, seed=args.seed
    )
    transactions = generate_transactions(customers, args.start, args.end, scenario=scenario)
    path = write_transactions_json(transactions, args.output)
    logger.info(f"Wrote {len(transactions)} synthetic transactions to {path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the command and return the exit code.

    Invalid input, bad configuration and file errors are logged and
    reported as exit code 1 rather than a traceback.
    """
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "generate":
            return _generate_command(args)
        return _run_command(args)
    except (ValueError, TypeError, KeyError, OSError) as exc:
        logger.error(f"{args.command} failed: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
