"""Export analysis tables and run manifests to disk."""

from retail_analytics.reporting.exports import (
    export_run_manifest_json,
    export_tables_csv,
)

__all__ = [
    "export_run_manifest_json",
    "export_tables_csv",
]
