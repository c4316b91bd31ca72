from __future__ import annotations

import json
from pathlib import Path

from payroll_import.logging.error_log import ERROR_TYPE_UNKNOWN_UAN, ERROR_TYPE_UPSERT, ErrorLogBuffer
from payroll_import.models.error_record import ErrorRecord
from payroll_import.models.import_report import ImportReport
from payroll_import.models.payroll_row import ImportReportRow, ParsedPayrollRow, RowStatus


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("p.xlsx", 3, "100000000001", "UPSERT_FAILED", "boom"))
    buf.append(ErrorRecord.create("p.xlsx", -1, "", "IMPORT_ABORTED", "Missing required column(s): hra"))
    path = buf.flush()
    assert path is not None and path.parent == tmp_path / "logs"
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(x)["row"] for x in lines] == [3, -1]
    assert len(buf) == 0


def test_flush_without_records_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_add_report_failures_classifies(tmp_path: Path):
    rows = [
        ImportReportRow(ParsedPayrollRow(2, "000000000002", 1, 1, 1, 1, 1), RowStatus.FAILURE, "Employee not found for UAN."),
        ImportReportRow(ParsedPayrollRow(3, "000000000003", 1, 1, 1, 1, 1), RowStatus.FAILURE, "RPC failed."),
        ImportReportRow(ParsedPayrollRow(4, "000000000004", 1, 1, 1, 1, 1), RowStatus.SUCCESS, "Imported successfully."),
    ]
    buf = ErrorLogBuffer(tmp_path)
    added = buf.add_report_failures("p.xlsx", ImportReport(rows), "Employee not found for UAN.")
    assert added == 2
    assert [r.error_type for r in buf.records] == [ERROR_TYPE_UNKNOWN_UAN, ERROR_TYPE_UPSERT]
    assert [r.row for r in buf.records] == [2, 3]
