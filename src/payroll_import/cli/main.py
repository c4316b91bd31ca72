from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import pandas as pd
from dotenv import load_dotenv

from payroll_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from payroll_import.db.gateway import GatewayError, PostgresGateway
from payroll_import.excel.reader import (
    REQUIRED_COLUMNS,
    WorkbookError,
    normalize_header,
    normalize_uan,
    parse_payroll_sheet,
    read_first_sheet,
)
from payroll_import.logging.error_log import ErrorLogBuffer
from payroll_import.logging.init import log_summary, setup_logging
from payroll_import.models.config_models import ImportConfig
from payroll_import.models.payroll_row import PayrollPeriod
from payroll_import.services.orchestrator import ImportAbortedError, run_import
from payroll_import.services.salary_slip import build_salary_slip, render_slip_pdf, render_slip_text
from payroll_import.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- import FILE --site ID --month MM --year YYYY [--report OUT.csv]
- sites
- inspect FILE   (no database access)
- slip --uan UAN --month MM --year YYYY [--company NAME] [--pdf OUT.pdf]

Exit codes: 0 all rows imported, 2 some rows failed, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

INSPECT_SAMPLE_ROWS = 5


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over existing environment variables."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _open_gateway(cfg: ImportConfig) -> Any:
    return PostgresGateway.from_config(cfg)


def _month(value: str) -> str:
    text = value.strip()
    if text.isdigit() and 1 <= int(text) <= 12:
        return text.zfill(2)
    raise argparse.ArgumentTypeError(f"invalid month: {value!r} (expected 1-12)")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="payroll-import", description="Payroll workbook -> salary records importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config path (default {DEFAULT_CONFIG_PATH})")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a payroll workbook for a site and month")
    imp.add_argument("file", type=Path)
    imp.add_argument("--site", required=True, help="Target site id")
    imp.add_argument("--month", required=True, type=_month)
    imp.add_argument("--year", required=True, type=int)
    imp.add_argument("--report", type=Path, help="Write the row-level report as CSV")

    sub.add_parser("sites", help="List selectable sites")

    ins = sub.add_parser("inspect", help="Show normalized headers and parsed rows, then exit")
    ins.add_argument("file", type=Path)

    slip = sub.add_parser("slip", help="Print the salary slip for an employee and month")
    slip.add_argument("--uan", required=True)
    slip.add_argument("--month", required=True, type=_month)
    slip.add_argument("--year", required=True, type=int)
    slip.add_argument("--company", default="HRM Portal")
    slip.add_argument("--pdf", type=Path, help="Write the slip as a PDF instead of printing it")
    return p.parse_args(argv)


def _inspect_data(path: Path) -> int:
    if not path.exists():
        print(f"inspect: file not found: {path}")
        return EXIT_FATAL
    try:
        df = read_first_sheet(path)
    except WorkbookError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    headers = [normalize_header(h) for h in df.iloc[0].tolist()] if df.shape[0] else []
    print(f"FILE: {path.name}")
    print(f"  headers={headers}")
    print(f"  missing={[c for c in REQUIRED_COLUMNS if c not in headers]}")
    try:
        rows = parse_payroll_sheet(df)
    except WorkbookError as e:
        print(f"  error={e}")
        return EXIT_FATAL
    print(f"  valid_rows={len(rows)}")
    for r in rows[:INSPECT_SAMPLE_ROWS]:
        print(
            f"    row={r.row_number} uan={r.uan} basic={r.basic} hra={r.hra} allowances={r.allowances} "
            f"deductions={r.deductions} paid_days={r.paid_days} net_payable={r.net_payable}"
        )
    return EXIT_SUCCESS_ALL


def _import(args: argparse.Namespace, cfg: ImportConfig, logger: Any) -> int:
    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    period = PayrollPeriod(site_id=args.site, month=args.month, year=args.year)
    error_log = ErrorLogBuffer(cfg.logs_directory)
    try:
        gateway = _open_gateway(cfg)
    except GatewayError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    try:
        with gateway:
            outcome = run_import(
                args.file,
                file_name=args.file.name,
                period=period,
                lookup=gateway.fetch_employees_by_uan,
                upsert=gateway.upsert_salary,
                error_log=error_log,
                batch_size=cfg.batch_size,
            )
    except ImportAbortedError as e:
        logger.error(f"import: {e}")
        _flush_error_log(error_log, logger)
        return EXIT_FATAL

    report = outcome.report
    for row in report.failures():
        logger.warning(f"row={row.row_number} uan={row.uan} {row.message}")
    _flush_error_log(error_log, logger)

    if args.report is not None:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(report.to_records()).to_csv(args.report, index=False)
        logger.info(f"report written: {args.report}")

    log_summary(render_summary_line(report, outcome.batches, outcome.elapsed_seconds))
    return EXIT_PARTIAL_FAILURE if report.failed > 0 else EXIT_SUCCESS_ALL


def _flush_error_log(error_log: ErrorLogBuffer, logger: Any) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning(f"error log not written: {e}")
        return
    if path is not None:
        logger.info(f"error log: {path}")


def _sites(cfg: ImportConfig, logger: Any) -> int:
    try:
        with _open_gateway(cfg) as gateway:
            sites = gateway.list_sites()
    except GatewayError as e:
        logger.error(f"sites: {e}")
        return EXIT_FATAL
    for site in sites:
        print(f"{site.id}\t{site.name}")
    return EXIT_SUCCESS_ALL


def _slip(args: argparse.Namespace, cfg: ImportConfig, logger: Any) -> int:
    uan = normalize_uan(args.uan)
    if not uan:
        logger.error(f"invalid UAN: {args.uan!r}")
        return EXIT_FATAL
    try:
        with _open_gateway(cfg) as gateway:
            record = gateway.fetch_salary_record(uan, args.month, args.year)
    except GatewayError as e:
        logger.error(f"slip: {e}")
        return EXIT_FATAL
    if record is None:
        logger.error(f"no salary record for uan={uan} period={args.month}-{args.year}")
        return EXIT_FATAL
    slip = build_salary_slip(record, company_name=args.company)
    if args.pdf is None:
        print(render_slip_text(slip))
        return EXIT_SUCCESS_ALL
    try:
        args.pdf.parent.mkdir(parents=True, exist_ok=True)
        args.pdf.write_bytes(render_slip_pdf(slip))
    except OSError as e:
        logger.error(f"slip: cannot write {args.pdf}: {e}")
        return EXIT_FATAL
    logger.info(f"salary slip written: {args.pdf}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    if args.command == "inspect":
        return _inspect_data(args.file)

    try:
        cfg = load_config(args.config or DEFAULT_CONFIG_PATH, required=args.config is not None)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "import":
        return _import(args, cfg, logger)
    if args.command == "sites":
        return _sites(cfg, logger)
    return _slip(args, cfg, logger)

