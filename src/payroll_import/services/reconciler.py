from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

from ..excel.reader import normalize_uan
from ..models.import_report import ImportReport
from ..models.payroll_row import ImportReportRow, ParsedPayrollRow, RowStatus

"""UAN -> employee reconciliation.

One bulk lookup per import for the distinct UAN set. Rows whose UAN is unknown
fail here and never reach the upsert stage. A lookup failure is fatal: without
the identity mapping no row can be persisted safely.
"""

__all__ = [
    "EmployeeLookup",
    "EmployeeLookupError",
    "MSG_EMPLOYEE_NOT_FOUND",
    "MSG_READY",
    "reconcile",
]

logger = logging.getLogger(__name__)

MSG_READY = "Ready to import"
MSG_EMPLOYEE_NOT_FOUND = "Employee not found for UAN."

# Given a set of UANs, return {uan: employee_id} for the known ones
EmployeeLookup = Callable[[set[str]], Mapping[str, str]]


class EmployeeLookupError(Exception):
    """Bulk employee lookup failed."""


def reconcile(rows: Iterable[ParsedPayrollRow], lookup: EmployeeLookup) -> ImportReport:
    """Resolve each row's UAN and build the initial report.

    Raises:
        EmployeeLookupError: if the lookup call raises
    """
    rows = list(rows)
    uans = {r.uan for r in rows}
    try:
        found = lookup(uans) if uans else {}
    except Exception as e:
        raise EmployeeLookupError(str(e) or "employee lookup failed") from e

    # stored UANs may be unpadded; compare on the 12-digit form
    employee_by_uan: dict[str, str] = {}
    for uan, employee_id in found.items():
        key = normalize_uan(uan)
        if key:
            employee_by_uan[key] = str(employee_id)

    report_rows: list[ImportReportRow] = []
    for r in rows:
        employee_id = employee_by_uan.get(r.uan)
        if employee_id is None:
            report_rows.append(ImportReportRow(row=r, status=RowStatus.FAILURE, message=MSG_EMPLOYEE_NOT_FOUND))
        else:
            report_rows.append(
                ImportReportRow(row=r, status=RowStatus.PENDING, message=MSG_READY, employee_id=employee_id)
            )

    report = ImportReport(report_rows)
    logger.info(f"reconciled uans={len(uans)} matched={len(employee_by_uan)} unmatched_rows={report.failed}")
    return report
