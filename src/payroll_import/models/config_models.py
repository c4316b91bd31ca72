from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the payroll import tool.

Built by payroll_import.config.loader from config/import.yml after schema
validation. Environment variables override the database section at connect
time (see payroll_import.db.gateway.resolve_dsn).
"""

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback used when environment variables are unset."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TableNames:
    """Relation names in the portal schema."""
    employees: str = "employees"
    salary_records: str = "salary_records"
    sites: str = "sites"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for the import process."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tables: TableNames = field(default_factory=TableNames)
    upsert_function: str = "upsert_salary"
    batch_size: int = DEFAULT_BATCH_SIZE  # also the in-flight call ceiling
    logs_directory: str = "logs"
