from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..models.import_report import ImportReport

"""Failure log buffering.

Rows that end an import as failures are buffered and written once per run to
`<logs_dir>/errors-YYYYMMDD-HHMMSS.log` (UTC stamp) as JSON Lines with a fixed
key set. The file is only created when there is something to write.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

ERROR_TYPE_UNKNOWN_UAN = "EMPLOYEE_NOT_FOUND"
ERROR_TYPE_UPSERT = "UPSERT_FAILED"
ERROR_TYPE_FATAL = "IMPORT_ABORTED"


class ErrorLogBuffer:
    """In-memory buffer for error records. flush() appends JSON Lines.

    The file path is decided on first access. Single-threaded use only: rows
    are appended after the batch executor has joined.
    """

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add_report_failures(self, file_name: str, report: ImportReport, unknown_message: str) -> int:
        """Buffer one record per failed report row; returns how many were added."""
        added = 0
        for row in report.failures():
            error_type = ERROR_TYPE_UNKNOWN_UAN if row.message == unknown_message else ERROR_TYPE_UPSERT
            self.append(ErrorRecord.create(file_name, row.row_number, row.uan, error_type, row.message))
            added += 1
        return added

    @property
    def records(self) -> tuple[ErrorRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
