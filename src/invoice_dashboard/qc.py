"""QC report + result persistence."""

from __future__ import annotations

from pathlib import Path

from invoice_dashboard.io import write_json
from invoice_dashboard.models import DashboardResult, QCReport


def write_qc_report(out_dir: Path, qc: QCReport) -> Path:
    """Write ``qc_report.json`` into *out_dir* and return the path."""
    return write_json(out_dir / "qc_report.json", qc.to_dict())


def write_results(out_dir: Path, result: DashboardResult) -> Path:
    """Write ``results.json`` (rows, duplicates, summary, series, trend)."""
    return write_json(out_dir / "results.json", result.to_dict())
