# Shared pytest fixtures
from __future__ import annotations

import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from payroll_import.logging.init import reset_logging

HEADER = ["uan", "basic", "hra", "allowances", "deductions", "paid_days"]


def make_workbook(path: Path, rows: list[list[object]], extra_sheets: dict[str, list[list[object]]] | None = None) -> Path:
    """Write rows (first row = header) to the first sheet of an xlsx file."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Payroll", header=False, index=False)
        for name, sheet_rows in (extra_sheets or {}).items():
            pd.DataFrame(sheet_rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


class FakeGateway:
    """In-memory stand-in for PostgresGateway's lookup / upsert calls."""

    def __init__(self, employees: dict[str, str] | None = None, failing: dict[str, str | None] | None = None) -> None:
        self.employees = dict(employees or {})
        # uan -> error text returned by upsert ("" = error without message)
        self.failing = dict(failing or {})
        self.lookup_calls: list[set[str]] = []
        self.upserts: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def fetch_employees_by_uan(self, uans: Iterable[str]) -> dict[str, str]:
        wanted = set(uans)
        self.lookup_calls.append(wanted)
        return {u: i for u, i in self.employees.items() if u in wanted}

    def upsert_salary(self, payload: dict[str, Any]) -> str | None:
        with self._lock:
            self.upserts.append(payload)
        if payload["uan"] in self.failing:
            return self.failing[payload["uan"]]
        return None

    def __enter__(self) -> FakeGateway:
        return self

    def __exit__(self, *exc: Any) -> None:
        pass


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: portal
  password: secret
  database: hrm
tables:
  employees: employees
  salary_records: salary_records
  sites: sites
upsert_function: upsert_salary
batch_size: 50
logs_directory: logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def payroll_workbook(temp_workdir: Path) -> Path:
    return make_workbook(
        temp_workdir / "data" / "payroll.xlsx",
        [
            HEADER,
            ["100000000001", 20000, 5000, 1000, 1200, 30],
            ["100000000002", 15000, 3000, 500, 800, 28],
        ],
    )


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway(employees={"100000000001": "emp-1", "100000000002": "emp-2"})


@pytest.fixture(autouse=True)
def _reset_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clean_db_env(monkeypatch):
    for name in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(name, raising=False)
