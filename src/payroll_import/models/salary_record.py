from __future__ import annotations

from dataclasses import dataclass

"""Read-only records fetched from the portal database."""

__all__ = [
    "SalaryRecord",
    "SiteSelection",
]


@dataclass(frozen=True)
class SiteSelection:
    """Selectable work site for an upload."""
    id: str
    name: str


@dataclass(frozen=True)
class SalaryRecord:
    """Stored salary row for one employee and month."""
    employee_id: str
    employee_name: str
    uan: str
    month: str  # "01".."12"
    year: int
    basic: float
    hra: float
    allowances: float
    deductions: float
    paid_days: float
    net_payable: float
    site_name: str | None = None
