from __future__ import annotations

import re

import payroll_import.cli.main as cli
from conftest import FakeGateway

SUMMARY_RE = re.compile(r"^SUMMARY rows=\d+ success=\d+ failed=\d+ batches=\d+ elapsed_sec=\d+(\.\d+)?$", re.M)


def test_exit_code_values():
    assert (cli.EXIT_SUCCESS_ALL, cli.EXIT_FATAL, cli.EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_summary_line_format(write_config, payroll_workbook, monkeypatch, capsys):
    monkeypatch.setattr(cli, "_open_gateway", lambda cfg: FakeGateway(employees={"100000000001": "emp-1"}))
    code = cli.main(["import", str(payroll_workbook), "--site", "s", "--month", "3", "--year", "2025"])
    assert code == cli.EXIT_PARTIAL_FAILURE
    out = capsys.readouterr().out
    assert len(SUMMARY_RE.findall(out)) == 1
    for line in out.splitlines():
        assert re.match(r"^(DEBUG|INFO|WARN|ERROR|SUMMARY) ", line), line
