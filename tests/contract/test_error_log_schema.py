from __future__ import annotations

import json
from pathlib import Path

from payroll_import.logging.error_log import ErrorLogBuffer
from payroll_import.models.error_record import FILE_LEVEL_ROW, ErrorRecord

EXPECTED_KEYS = {"timestamp", "file", "row", "uan", "error_type", "message"}


def test_error_log_line_has_fixed_keys(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("payroll.xlsx", 4, "100000000001", "UPSERT_FAILED", "duplicate key"))
    buf.append(ErrorRecord.create("payroll.xlsx", FILE_LEVEL_ROW, "", "IMPORT_ABORTED", "Missing required column(s): hra"))
    path = buf.flush()
    assert path is not None and path.name.startswith("errors-") and path.suffix == ".log"

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    for line in lines:
        obj = json.loads(line)
        assert set(obj) == EXPECTED_KEYS
        assert isinstance(obj["row"], int)
        assert obj["timestamp"].endswith("Z")
    assert json.loads(lines[1])["row"] == -1
