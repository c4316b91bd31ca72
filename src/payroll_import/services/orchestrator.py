from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..db.batch_upsert import BATCH_SIZE, BatchMetrics, UpsertCall, upsert_in_batches
from ..excel.reader import WorkbookError, WorkbookSource, parse_payroll_workbook
from ..logging.error_log import ERROR_TYPE_FATAL, ErrorLogBuffer
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_report import ImportReport
from ..models.payroll_row import PayrollPeriod
from .progress import UpsertProgress
from .reconciler import MSG_EMPLOYEE_NOT_FOUND, EmployeeLookup, EmployeeLookupError, reconcile

"""Payroll import orchestration: one uploaded workbook, end to end.

Pipeline:
1. validate the target period (site, month, year)
2. parse the first sheet into ParsedPayrollRow records
3. reconcile UANs against employees with one bulk lookup
4. upsert resolved rows in sequential batches of concurrent calls
5. buffer failed rows in the error log

Steps 1-3 are the only abort points; nothing is written before step 4 starts.
Once batching starts the import always runs to the end and returns a report
with per-row outcomes.
"""

__all__ = [
    "ImportAbortedError",
    "ImportOutcome",
    "MSG_NO_VALID_ROWS",
    "run_import",
]

logger = logging.getLogger(__name__)

MSG_NO_VALID_ROWS = "No valid payroll rows found. Check UAN and numeric values."


class ImportAbortedError(Exception):
    """Fatal pre-batch failure; no row was persisted."""


@dataclass(frozen=True)
class ImportOutcome:
    report: ImportReport
    batches: int
    elapsed_seconds: float
    batch_metrics: list[BatchMetrics] = field(default_factory=list)


def _abort(message: str, file_name: str, error_log: ErrorLogBuffer | None) -> ImportAbortedError:
    logger.error(f"import aborted file={file_name}: {message}")
    if error_log is not None:
        error_log.append(ErrorRecord.create(file_name, FILE_LEVEL_ROW, "", ERROR_TYPE_FATAL, message))
    return ImportAbortedError(message)


def run_import(
    source: WorkbookSource,
    *,
    file_name: str,
    period: PayrollPeriod,
    lookup: EmployeeLookup,
    upsert: UpsertCall,
    error_log: ErrorLogBuffer | None = None,
    batch_size: int = BATCH_SIZE,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> ImportOutcome:
    """Import one payroll workbook for a site and month.

    Args:
        source: workbook bytes, path or binary file object
        file_name: name shown in logs and error records
        period: target site / month ("01".."12") / year
        lookup: bulk UAN -> employee id lookup
        upsert: per-row idempotent salary upsert (None = success, str = error)
        error_log: optional buffer receiving failure records (caller flushes)
        batch_size: rows per batch (also the in-flight call ceiling)
        metrics_callback: optional per-batch metrics receiver

    Raises:
        ImportAbortedError: invalid period, unreadable/invalid workbook, no
            valid rows, or employee lookup failure
    """
    start_time = datetime.now(UTC)

    try:
        period.validate()
    except ValueError as e:
        raise _abort(str(e), file_name, error_log) from e

    try:
        rows = parse_payroll_workbook(source)
    except WorkbookError as e:
        raise _abort(str(e), file_name, error_log) from e

    if not rows:
        raise _abort(MSG_NO_VALID_ROWS, file_name, error_log)
    logger.info(f"parsed file={file_name} valid_rows={len(rows)}")

    try:
        report = reconcile(rows, lookup)
    except EmployeeLookupError as e:
        raise _abort(f"Employee lookup failed: {e}", file_name, error_log) from e

    metrics: list[BatchMetrics] = []

    def on_batch(m: BatchMetrics) -> None:
        metrics.append(m)
        if metrics_callback is not None:
            metrics_callback(m)

    with UpsertProgress(report.pending) as progress:
        result = upsert_in_batches(
            report,
            period,
            upsert,
            batch_size=batch_size,
            metrics_callback=on_batch,
            progress=progress,
        )
        progress.set_postfix(success=report.success, failed=report.failed)

    if error_log is not None:
        error_log.add_report_failures(file_name, report, MSG_EMPLOYEE_NOT_FOUND)

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(
        f"imported file={file_name} site={period.site_id} period={period.month}-{period.year} "
        f"success={report.success} failed={report.failed}"
    )
    return ImportOutcome(report=report, batches=result.batches, elapsed_seconds=elapsed, batch_metrics=metrics)
