"""Domain models for the payroll workbook import.

Rows flow parser -> reconciler -> batch upsert; the report is the single
value object shared by those stages within one import invocation.
"""

from .config_models import DatabaseConfig, ImportConfig, TableNames
from .error_record import ErrorRecord
from .import_report import ImportReport
from .payroll_row import ImportReportRow, ParsedPayrollRow, PayrollPeriod, RowStatus
from .salary_record import SalaryRecord, SiteSelection

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "TableNames",
    # Processing models
    "ErrorRecord",
    "ImportReport",
    "ImportReportRow",
    "ParsedPayrollRow",
    "PayrollPeriod",
    "RowStatus",
    # External references
    "SalaryRecord",
    "SiteSelection",
]
