from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

"""Row-level models for the payroll import.

ParsedPayrollRow is the fixed-shape record produced by the workbook parser.
ImportReportRow wraps it with the reconciliation / upsert outcome. Both are
immutable; status changes produce a new record which the report swaps in by
index (see ImportReport.replace).
"""

__all__ = [
    "ImportReportRow",
    "ParsedPayrollRow",
    "PayrollPeriod",
    "RowStatus",
    "UAN_LENGTH",
]

UAN_LENGTH = 12

_MONTH_RE = re.compile(r"^(0[1-9]|1[0-2])$")


class RowStatus(Enum):
    """Outcome of a single sheet row.

    State transitions: pending -> (success | failure), or failure directly
    when the UAN cannot be resolved.
    """
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ParsedPayrollRow:
    """One surviving workbook row after header and value normalization."""
    row_number: int  # 1-based sheet row (header is row 1)
    uan: str  # exactly 12 digits
    basic: float
    hra: float
    allowances: float
    deductions: float
    paid_days: float

    @property
    def net_payable(self) -> float:
        # may go negative when deductions exceed earnings; the store validates
        return self.basic + self.hra + self.allowances - self.deductions


@dataclass(frozen=True)
class PayrollPeriod:
    """Target site and salary month for one upload."""
    site_id: str
    month: str  # "01".."12"
    year: int

    def validate(self) -> None:
        """Raise ValueError when the period cannot be submitted."""
        if not str(self.site_id or "").strip():
            raise ValueError("Please select a site before uploading payroll.")
        if not isinstance(self.month, str) or not _MONTH_RE.match(self.month):
            raise ValueError(f"month must be a 2-digit string 01..12, got {self.month!r}")
        if isinstance(self.year, bool) or not isinstance(self.year, int) or not 1900 <= self.year <= 9999:
            raise ValueError(f"year must be a 4-digit integer, got {self.year!r}")


@dataclass(frozen=True)
class ImportReportRow:
    """Parsed row plus its import outcome."""
    row: ParsedPayrollRow
    status: RowStatus
    message: str
    employee_id: str | None = None

    @property
    def row_number(self) -> int:
        return self.row.row_number

    @property
    def uan(self) -> str:
        return self.row.uan

    def with_outcome(self, status: RowStatus, message: str) -> ImportReportRow:
        """Return a copy carrying the final outcome.

        Only pending rows may transition; a settled row is never rewritten.
        """
        if self.status is not RowStatus.PENDING:
            raise ValueError(f"row {self.row_number} already settled as {self.status.value}")
        if status is RowStatus.PENDING:
            raise ValueError("outcome must be success or failure")
        return replace(self, status=status, message=message)

    def to_upsert_payload(self, period: PayrollPeriod) -> dict[str, Any]:
        """Build keyword arguments for the upsert_salary remote function."""
        r = self.row
        return {
            "employee_id": self.employee_id,
            "site_id": period.site_id,
            "month": period.month,
            "year": period.year,
            "uan": r.uan,
            "basic": r.basic,
            "hra": r.hra,
            "allowances": r.allowances,
            "deductions": r.deductions,
            "paid_days": r.paid_days,
            "net_payable": r.net_payable,
        }
