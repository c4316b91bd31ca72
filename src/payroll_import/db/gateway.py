from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extras
from psycopg2 import sql
from psycopg2.pool import ThreadedConnectionPool

from ..models.config_models import DatabaseConfig, ImportConfig, TableNames
from ..models.salary_record import SalaryRecord, SiteSelection

"""Postgres access for the payroll import.

The portal keeps employees, sites and salary records in Postgres and exposes an
idempotent `upsert_salary(...)` function keyed by (employee, month, year).
This gateway provides the collaborators the import pipeline consumes:

- fetch_employees_by_uan: bulk UAN lookup (one query per import)
- upsert_salary: one remote call per row; errors come back as text
- list_sites: selectable sites for an upload
- fetch_salary_record: stored month for the salary slip

Calls may arrive from the batch thread pool concurrently, so every call borrows
its own connection from a ThreadedConnectionPool sized to the batch ceiling.
"""

__all__ = [
    "GatewayError",
    "PostgresGateway",
    "UPSERT_ARGUMENTS",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# Named arguments of the upsert_salary database function, in call order
UPSERT_ARGUMENTS: tuple[str, ...] = (
    "employee_id",
    "site_id",
    "month",
    "year",
    "uan",
    "basic",
    "hra",
    "allowances",
    "deductions",
    "paid_days",
    "net_payable",
)


# Stored UAN reduced to the 12-digit form normalize_uan produces (digits only,
# last 12, zero-padded)
_NORMALIZED_UAN = sql.SQL("right('000000000000' || regexp_replace(uan, '\\D', '', 'g'), 12)")


class GatewayError(Exception):
    """Database unreachable or a read query failed."""


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection string.

    Precedence:
        1. DATABASE_URL / PGDSN environment variables (whole DSN)
        2. config `database.dsn`
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling back
           to the matching config key
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _identifier(name: str) -> sql.Composable:
    if not _IDENTIFIER.match(name):
        raise GatewayError(f"invalid identifier: {name!r}")
    return sql.SQL(".").join(sql.Identifier(part) for part in name.split("."))


def _error_text(e: psycopg2.Error) -> str:
    text = (e.pgerror or str(e) or "").strip()
    # pgerror is "ERROR:  message\nDETAIL: ..."; keep the first line without the label
    first = text.splitlines()[0] if text else ""
    return first.removeprefix("ERROR:").strip()


class PostgresGateway:
    """Pooled psycopg2 access to the portal schema."""

    def __init__(
        self,
        dsn: str,
        *,
        tables: TableNames | None = None,
        upsert_function: str = "upsert_salary",
        minconn: int | None = None,
        maxconn: int = 50,
        pool: Any = None,
    ) -> None:
        self.tables = tables or TableNames()
        self._employees = _identifier(self.tables.employees)
        self._salary_records = _identifier(self.tables.salary_records)
        self._sites = _identifier(self.tables.sites)
        self._upsert_function = _identifier(upsert_function)
        if pool is not None:
            self._pool = pool
        else:
            # connections returned beyond minconn are closed, so keep the whole ceiling open
            minconn = maxconn if minconn is None else minconn
            try:
                self._pool = ThreadedConnectionPool(minconn, maxconn, dsn)
            except psycopg2.Error as e:
                raise GatewayError(f"connect failed: {e}") from e

    @classmethod
    def from_config(cls, cfg: ImportConfig) -> PostgresGateway:
        return cls(
            resolve_dsn(cfg.database),
            tables=cfg.tables,
            upsert_function=cfg.upsert_function,
            minconn=max(1, cfg.batch_size),
            maxconn=max(1, cfg.batch_size),
        )

    @contextmanager
    def _cursor(self, dict_rows: bool = False) -> Iterator[Any]:
        conn = self._pool.getconn()
        try:
            conn.autocommit = True  # each call is its own transaction
            factory = psycopg2.extras.RealDictCursor if dict_rows else None
            with conn.cursor(cursor_factory=factory) as cur:
                yield cur
        finally:
            self._pool.putconn(conn)

    def fetch_employees_by_uan(self, uans: Iterable[str]) -> dict[str, str]:
        """Return {uan: employee_id} for the known UANs in `uans`."""
        wanted = sorted(set(uans))
        if not wanted:
            return {}
        query = sql.SQL("SELECT id, uan FROM {} WHERE {} = ANY(%s)").format(self._employees, _NORMALIZED_UAN)
        try:
            with self._cursor() as cur:
                cur.execute(query, (wanted,))
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise GatewayError(_error_text(e) or "employee lookup failed") from e
        return {str(uan): str(emp_id) for emp_id, uan in rows}

    def upsert_salary(self, payload: dict[str, Any]) -> str | None:
        """Call the upsert function once. None on success, else the error text
        (possibly empty; the batch layer substitutes a generic message)."""
        args = sql.SQL(", ").join(
            sql.SQL("{} => {}").format(sql.Identifier(name), sql.Placeholder(name))
            for name in UPSERT_ARGUMENTS
        )
        query = sql.SQL("SELECT {}({})").format(self._upsert_function, args)
        params = {name: payload.get(name) for name in UPSERT_ARGUMENTS}
        try:
            with self._cursor() as cur:
                cur.execute(query, params)
        except psycopg2.Error as e:
            message = _error_text(e)
            logger.debug(f"upsert_salary failed uan={payload.get('uan')}: {message}")
            return message
        return None

    def list_sites(self) -> list[SiteSelection]:
        query = sql.SQL("SELECT id, name FROM {} ORDER BY name").format(self._sites)
        try:
            with self._cursor() as cur:
                cur.execute(query)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise GatewayError(f"Unable to load site list: {_error_text(e)}") from e
        return [SiteSelection(id=str(site_id), name=str(name)) for site_id, name in rows]

    def fetch_salary_record(self, uan: str, month: str, year: int) -> SalaryRecord | None:
        query = sql.SQL(
            "SELECT s.employee_id, e.name AS employee_name, s.uan, s.month, s.year,"
            " s.basic, s.hra, s.allowances, s.deductions, s.paid_days, s.net_payable,"
            " st.name AS site_name"
            " FROM {salary} s"
            " JOIN {employees} e ON e.id = s.employee_id"
            " LEFT JOIN {sites} st ON st.id = s.site_id"
            " WHERE s.uan = %s AND s.month = %s AND s.year = %s"
            " LIMIT 1"
        ).format(salary=self._salary_records, employees=self._employees, sites=self._sites)
        try:
            with self._cursor(dict_rows=True) as cur:
                cur.execute(query, (uan, month, year))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise GatewayError(_error_text(e) or "salary lookup failed") from e
        if row is None:
            return None
        return SalaryRecord(
            employee_id=str(row["employee_id"]),
            employee_name=row["employee_name"] or "",
            uan=str(row["uan"]),
            month=str(row["month"]),
            year=int(row["year"]),
            basic=float(row["basic"] or 0),
            hra=float(row["hra"] or 0),
            allowances=float(row["allowances"] or 0),
            deductions=float(row["deductions"] or 0),
            paid_days=float(row["paid_days"] or 0),
            net_payable=float(row["net_payable"] or 0),
            site_name=row["site_name"],
        )

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    def __enter__(self) -> PostgresGateway:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
