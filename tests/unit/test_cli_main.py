from __future__ import annotations

from pathlib import Path

import pytest

import payroll_import.cli.main as cli
from conftest import HEADER, FakeGateway, make_workbook
from payroll_import.db.gateway import GatewayError
from payroll_import.models.salary_record import SalaryRecord, SiteSelection


class SiteGateway(FakeGateway):
    def list_sites(self):
        return [SiteSelection("s1", "Alpha"), SiteSelection("s2", "Beta")]

    def fetch_salary_record(self, uan, month, year):
        if uan != "100000000001":
            return None
        return SalaryRecord("emp-1", "Asha", uan, month, year, 20000, 5000, 1000, 1200, 30, 24800)


@pytest.fixture()
def gateway(monkeypatch) -> SiteGateway:
    gw = SiteGateway(employees={"100000000001": "emp-1"})
    monkeypatch.setattr(cli, "_open_gateway", lambda cfg: gw)
    return gw


def test_requires_subcommand():
    with pytest.raises(SystemExit):
        cli.main([])


def test_invalid_month_rejected_by_parser(temp_workdir: Path):
    with pytest.raises(SystemExit):
        cli.main(["import", "x.xlsx", "--site", "s1", "--month", "13", "--year", "2025"])


def test_month_is_zero_padded(temp_workdir: Path, payroll_workbook: Path, gateway: SiteGateway):
    cli.main(["import", str(payroll_workbook), "--site", "s1", "--month", "3", "--year", "2025"])
    assert {p["month"] for p in gateway.upserts} == {"03"}


def test_sites(temp_workdir: Path, gateway: SiteGateway, capsys):
    assert cli.main(["sites"]) == cli.EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "s1\tAlpha" in out and "s2\tBeta" in out


def test_slip(temp_workdir: Path, gateway: SiteGateway, capsys):
    code = cli.main(["slip", "--uan", "1000 0000 0001", "--month", "03", "--year", "2025", "--company", "Acme"])
    assert code == cli.EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "Salary Slip for March 2025" in out
    assert "Twenty Four Thousand Eight Hundred Rupees Only" in out


def test_slip_pdf(temp_workdir: Path, gateway: SiteGateway, capsys):
    out_path = temp_workdir / "slips" / "Payslip_03_100000000001.pdf"
    code = cli.main(["slip", "--uan", "100000000001", "--month", "3", "--year", "2025", "--pdf", str(out_path)])
    assert code == cli.EXIT_SUCCESS_ALL
    assert out_path.read_bytes().startswith(b"%PDF")
    out = capsys.readouterr().out
    assert "INFO salary slip written" in out
    assert "Salary Slip for" not in out


def test_slip_missing_record(temp_workdir: Path, gateway: SiteGateway, capsys):
    assert cli.main(["slip", "--uan", "999", "--month", "03", "--year", "2025"]) == cli.EXIT_FATAL
    assert "no salary record" in capsys.readouterr().out


def test_gateway_connect_failure(temp_workdir: Path, payroll_workbook: Path, monkeypatch, capsys):
    def boom(cfg):
        raise GatewayError("connect failed: could not connect to server")

    monkeypatch.setattr(cli, "_open_gateway", boom)
    code = cli.main(["import", str(payroll_workbook), "--site", "s1", "--month", "03", "--year", "2025"])
    assert code == cli.EXIT_FATAL
    assert "ERROR database: connect failed" in capsys.readouterr().out


def test_explicit_missing_config_is_fatal(temp_workdir: Path, capsys):
    assert cli.main(["--config", "missing.yml", "sites"]) == cli.EXIT_FATAL
    assert "config file not found" in capsys.readouterr().out


def test_inspect(temp_workdir: Path, capsys):
    path = make_workbook(
        temp_workdir / "data" / "p.xlsx",
        [["UAN", "Basic", "HRA", "Allowances", "Deductions", "Paid Days"], ["100000000001", 1, 2, 3, 4, 5]],
    )
    assert cli.main(["inspect", str(path)]) == cli.EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "headers=['uan', 'basic', 'hra', 'allowances', 'deductions', 'paid_days']" in out
    assert "missing=[]" in out
    assert "valid_rows=1" in out


def test_inspect_missing_column(temp_workdir: Path, capsys):
    path = make_workbook(temp_workdir / "data" / "p.xlsx", [HEADER[:2], ["100000000001", 1]])
    assert cli.main(["inspect", str(path)]) == cli.EXIT_FATAL
    assert "Missing required column(s): hra, allowances, deductions, paid_days" in capsys.readouterr().out


def test_debug_flag(temp_workdir: Path, gateway: SiteGateway, capsys):
    cli.main(["--debug", "sites"])
    assert "DEBUG debug mode enabled" in capsys.readouterr().out
