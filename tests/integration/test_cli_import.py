from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

import payroll_import.cli.main as cli
from conftest import HEADER, FakeGateway, make_workbook


@pytest.fixture()
def use_gateway(monkeypatch):
    def install(gw: FakeGateway) -> FakeGateway:
        monkeypatch.setattr(cli, "_open_gateway", lambda cfg: gw)
        return gw

    return install


def _import_args(path: Path, *extra: str) -> list[str]:
    return ["import", str(path), "--site", "site-1", "--month", "03", "--year", "2025", *extra]


def test_all_rows_imported(write_config: Path, payroll_workbook: Path, fake_gateway: FakeGateway, use_gateway, capsys):
    use_gateway(fake_gateway)
    code = cli.main(_import_args(payroll_workbook))
    assert code == cli.EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "SUMMARY rows=2 success=2 failed=0 batches=1" in out
    assert len(fake_gateway.lookup_calls) == 1


def test_partial_failure_writes_error_log_and_report(
    write_config: Path, temp_workdir: Path, payroll_workbook: Path, use_gateway, capsys
):
    use_gateway(FakeGateway(employees={"100000000001": "emp-1"}))
    report_path = temp_workdir / "out" / "report.csv"
    code = cli.main(_import_args(payroll_workbook, "--report", str(report_path)))
    assert code == cli.EXIT_PARTIAL_FAILURE

    out = capsys.readouterr().out
    assert "WARN row=3 uan=100000000002 Employee not found for UAN." in out
    assert "SUMMARY rows=2 success=1 failed=1" in out

    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["row"] == 3 and record["error_type"] == "EMPLOYEE_NOT_FOUND"

    df = pd.read_csv(report_path, dtype={"uan": str})
    assert list(df["row_number"]) == [2, 3]
    assert list(df["status"]) == ["success", "failure"]
    assert df["uan"].iloc[1] == "100000000002"


def test_missing_column_is_fatal(write_config: Path, temp_workdir: Path, use_gateway, capsys):
    gw = use_gateway(FakeGateway(employees={"100000000001": "emp-1"}))
    path = make_workbook(temp_workdir / "data" / "p.xlsx", [[c for c in HEADER if c != "hra"], ["100000000001", 1, 1, 1, 1]])
    code = cli.main(_import_args(path))
    assert code == cli.EXIT_FATAL
    assert "ERROR import: Missing required column(s): hra" in capsys.readouterr().out
    assert gw.upserts == []
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert json.loads(logs[0].read_text(encoding="utf-8"))["row"] == -1


def test_missing_file_is_fatal(write_config: Path, temp_workdir: Path, use_gateway):
    use_gateway(FakeGateway())
    assert cli.main(_import_args(temp_workdir / "nope.xlsx")) == cli.EXIT_FATAL


def test_env_file_loaded(write_config: Path, temp_workdir: Path, payroll_workbook: Path, monkeypatch):
    (temp_workdir / ".env").write_text("DATABASE_URL=postgresql://env-user@env-host/hrm\n", encoding="utf-8")
    seen = {}

    def open_gateway(cfg):
        from payroll_import.db.gateway import resolve_dsn

        seen["dsn"] = resolve_dsn(cfg.database)
        return FakeGateway(employees={"100000000001": "emp-1", "100000000002": "emp-2"})

    monkeypatch.setattr(cli, "_open_gateway", open_gateway)
    assert cli.main(_import_args(payroll_workbook)) == cli.EXIT_SUCCESS_ALL
    assert seen["dsn"] == "postgresql://env-user@env-host/hrm"


def test_damaged_legacy_xls_exits_fatal(write_config: Path, temp_workdir: Path, use_gateway, capsys):
    gw = use_gateway(FakeGateway())
    path = temp_workdir / "data" / "legacy.xls"
    path.write_bytes(bytes.fromhex("D0CF11E0A1B11AE1") + b"\x00" * 504)
    assert cli.main(_import_args(path)) == cli.EXIT_FATAL
    assert "ERROR import: Unable to read workbook" in capsys.readouterr().out
    assert gw.upserts == []
