"""Export analysis tables to CSV and run metadata to JSON.

Tables are written one file per table (``<name>.csv``) so downstream
dashboards and spreadsheets can pick up each report independently. The
JSON manifest records what was produced and with which parameters.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

logger = logging.getLogger(__name__)


def export_tables_csv(
    tables: Mapping[str, pd.DataFrame],
    output_dir: str | Path,
) -> dict[str, Path]:
    """Write each table to ``output_dir/<name>.csv``.

    Parameters
    ----------
    tables:
        Mapping of table name to DataFrame
    output_dir:
        Directory for the CSV files (created if missing)

    Returns
    -------
    dict
        Mapping of table name to the written file path

    Examples
    --------
    >>> tables = calculate_cohort_retention_df(txns_df)
    >>> export_tables_csv(tables, "reports/2024-06")
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written: dict[str, Path] = {}
    for name, df in tables.items():
        if not name or Path(name).name != name:
            raise ValueError(f"Invalid table name {name!r}; must be a plain file stem")
        path = output_dir / f"{name}.csv"
        df.to_csv(path, index=False, date_format="%Y-%m-%d")
        written[name] = path
        logger.debug(f"Wrote {len(df)} rows to {path}")

    logger.info(f"Exported {len(written)} tables to {output_dir}")
    return written


def export_run_manifest_json(
    output_path: str | Path,
    tables: Mapping[str, pd.DataFrame],
    metadata: dict[str, Any] | None = None,
) -> Path:
    """Write a JSON manifest describing an analysis run.

    The manifest lists every table with its row count and columns, plus
    arbitrary ``metadata`` (reference date, configuration, input path).
    Values that are not JSON-native (dates, Decimals) are stringified.

    Examples
    --------
    >>> export_run_manifest_json(
    ...     "reports/manifest.json",
    ...     tables,
    ...     metadata={"reference_date": "2024-06-30", "components": ["rfm"]},
    ... )
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    manifest = {
        "metadata": metadata or {},
        "timestamp": datetime.now().isoformat(),
        "tables": {
            name: {"rows": int(len(df)), "columns": [str(c) for c in df.columns]}
            for name, df in tables.items()
        },
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True, default=str)

    logger.info(f"Run manifest exported to {output_path}")
    return output_path
