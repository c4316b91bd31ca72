"""Payroll workbook import for the HR portal (xlsx -> Postgres salary records)."""

__version__ = "0.1.0"
