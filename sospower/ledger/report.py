"""CSV report and percentile summary for a computed SOS power run."""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Iterable, Mapping

from .compute_power import _tdiv
from .models import CompositeRecord, PercentileResult

REPORT_COLUMNS = (
    ("account", "account"),
    ("sosPower", "sos_power"),
    ("sosBalance", "sos_balance"),
    ("veSosBalance", "ve_sos_balance"),
    ("slpBalance", "slp_balance"),
    ("normalizedSosBalance", "normalized_sos_balance"),
    ("normalizedVeSosBalance", "normalized_ve_sos_balance"),
    ("normalizedSlpBalance", "normalized_slp_balance"),
)

ETHER = 10**18


def report_path(data_dir: str, end_block: int) -> Path:
    return Path(data_dir) / f"sos-power-{end_block}.csv"


def report_rows(records: Mapping[str, CompositeRecord]) -> Iterable[list[str]]:
    for record in records.values():
        yield [str(getattr(record, field)) for _, field in REPORT_COLUMNS]


def write_report(path: Path, records: Mapping[str, CompositeRecord]) -> Path:
    """Write the CSV report atomically; returns the final path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", newline="") as f:
        writer = csv.writer(f, lineterminator="\r\n")
        writer.writerow([header for header, _ in REPORT_COLUMNS])
        writer.writerows(report_rows(records))
    os.replace(tmp, path)
    return path


def format_percentile(result: PercentileResult, unit: int = ETHER) -> str:
    """``P{p} {account} {power in whole tokens, truncated toward zero}``."""
    p = result.percentile
    label = str(int(p)) if float(p).is_integer() else str(p)
    return f"P{label} {result.record.account} {_tdiv(result.record.sos_power, unit)}"


__all__ = ["REPORT_COLUMNS", "format_percentile", "report_path", "write_report"]
