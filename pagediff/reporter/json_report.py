"""JSON report output."""

from __future__ import annotations

from pathlib import Path

from pagediff.models.report import ComparisonReport

from .report import format_report_json


def write_json_report(report: ComparisonReport, output_path: Path) -> Path:
    """Write a machine-readable JSON report."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(format_report_json(report))
    return output_path
