"""Tests for the CSV report and percentile lines."""

import tempfile
from pathlib import Path

from sospower.ledger.models import CompositeRecord, PercentileResult
from sospower.ledger.report import ETHER, format_percentile, report_path, write_report

AAA = "0x" + "a" * 40


def _record(**kw) -> CompositeRecord:
    record = CompositeRecord(account=AAA, **kw)
    record.derive_power()
    return record


class TestReport:

    def test_report_path(self):
        assert report_path("data", 14_000_000) == Path("data") / "sos-power-14000000.csv"

    def test_write_report(self):
        record = _record(sos_balance=10**22, normalized_sos_balance=10**21, normalized_ve_sos_balance=5)
        with tempfile.TemporaryDirectory() as d:
            path = write_report(report_path(d, 99), {AAA: record})
            content = path.read_bytes().decode()
            assert not Path(str(path) + ".tmp").exists()

        lines = content.split("\r\n")
        assert lines[0] == (
            "account,sosPower,sosBalance,veSosBalance,slpBalance,"
            "normalizedSosBalance,normalizedVeSosBalance,normalizedSlpBalance"
        )
        assert lines[1] == f"{AAA},{10**21 + 5},{10**22},0,0,{10**21},5,0"
        assert lines[2] == ""

    def test_empty_report_has_header_only(self):
        with tempfile.TemporaryDirectory() as d:
            path = write_report(Path(d) / "nested" / "out.csv", {})
            assert path.read_text().count("\n") == 1

    def test_format_percentile(self):
        record = _record(normalized_sos_balance=1234 * ETHER + 1)
        assert format_percentile(PercentileResult(percentile=99.9, index=3, record=record)) == f"P99.9 {AAA} 1234"
        assert format_percentile(PercentileResult(percentile=50.0, index=1, record=record)) == f"P50 {AAA} 1234"

    def test_format_percentile_truncates_negative_power_toward_zero(self):
        record = _record(normalized_sos_balance=-(3 * ETHER // 2))
        assert format_percentile(PercentileResult(percentile=15, index=0, record=record)) == f"P15 {AAA} -1"
