from __future__ import annotations

import io
import logging
import math
import numbers
import re
import zipfile
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError
from xlrd.compdoc import CompDocError

from ..models.payroll_row import UAN_LENGTH, ParsedPayrollRow

"""Payroll workbook reader.

.xlsx is read with openpyxl, legacy .xls with xlrd.
First worksheet only; row 1 is the header, every following row is data.
Headers are normalized (lower-case, non-alphanumeric runs -> '_') before the
required-column check, so "Paid  Days" and "paid-days" both satisfy paid_days.

Structural problems (no sheet, no data rows, missing columns) raise
WorkbookError subclasses. Value problems drop the single row.
"""

__all__ = [
    "REQUIRED_COLUMNS",
    "MissingColumnsError",
    "NoRowsError",
    "UnreadableWorkbookError",
    "WorkbookEmptyError",
    "WorkbookError",
    "normalize_header",
    "normalize_uan",
    "parse_payroll_sheet",
    "parse_payroll_workbook",
    "read_first_sheet",
    "to_number",
]

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = ("uan", "basic", "hra", "allowances", "deductions", "paid_days")
AMOUNT_COLUMNS: tuple[str, ...] = ("basic", "hra", "allowances", "deductions", "paid_days")

# Sheet row of the first data row (header occupies row 1)
FIRST_DATA_ROW = 2

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NON_DIGIT = re.compile(r"\D")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

WorkbookSource = bytes | bytearray | Path | str | IO[bytes]


class WorkbookError(Exception):
    """Structural workbook problem; aborts the whole import."""


class WorkbookEmptyError(WorkbookError):
    """Raised when the workbook has no worksheet."""


class UnreadableWorkbookError(WorkbookError):
    """Raised when the upload is not a readable spreadsheet."""


class NoRowsError(WorkbookError):
    """Raised when the first sheet has a header but no data rows."""


class MissingColumnsError(WorkbookError):
    """Raised when required columns are absent after header normalization."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required column(s): {', '.join(missing)}")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_header(header: Any) -> str:
    """Lower-case, trim and collapse non-alphanumeric runs to a single '_'.

    >>> normalize_header(" Paid  Days ")
    'paid_days'
    """
    if _is_blank(header):
        return ""
    return _NON_ALNUM.sub("_", str(header).lower().strip()).strip("_")


def _cell_text(value: Any) -> str:
    """String form of a cell; integral floats lose their '.0' suffix."""
    if _is_blank(value):
        return ""
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_uan(value: Any) -> str:
    """Reduce a UAN cell to exactly 12 digits, or '' when it has no digits.

    Longer inputs keep the last 12 digits; shorter ones are left-padded.
    """
    digits = _NON_DIGIT.sub("", _cell_text(value))
    if not digits:
        return ""
    if len(digits) >= UAN_LENGTH:
        return digits[-UAN_LENGTH:]
    return digits.zfill(UAN_LENGTH)


def to_number(value: Any) -> float:
    """Parse an amount cell. Returns NaN when the value is not a finite number.

    Native numeric cells pass through; text has thousands separators removed.
    Blank cells read as 0.
    """
    if isinstance(value, bool):
        return math.nan
    if _is_blank(value):
        return 0.0
    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else math.nan
    text = str(value).replace(",", "").strip()
    if not _DECIMAL.match(text):
        return math.nan
    number = float(text)
    return number if math.isfinite(number) else math.nan


def read_first_sheet(source: WorkbookSource) -> pd.DataFrame:
    """Read the first worksheet raw (no header applied)."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))
    # pandas picks the engine from the file signature; ImportError means it is not installed
    try:
        xls = pd.ExcelFile(source)
    except (ValueError, OSError, zipfile.BadZipFile, InvalidFileException, XLRDError, CompDocError, ImportError) as e:
        raise UnreadableWorkbookError(f"Unable to read workbook: {e}") from e
    with xls:
        if not xls.sheet_names:
            raise WorkbookEmptyError("Workbook is empty.")
        # text stays text ("NA" is not NaN) so amount parsing sees what was typed
        return xls.parse(xls.sheet_names[0], header=None, keep_default_na=False, na_values=[""])


def _header_positions(header_row: Iterable[Any]) -> dict[str, int]:
    positions: dict[str, int] = {}
    for pos, raw in enumerate(header_row):
        name = normalize_header(raw)
        if name:
            positions[name] = pos  # later duplicates win
    return positions


def _parse_row(values: list[Any], positions: dict[str, int], row_number: int) -> ParsedPayrollRow | None:
    def cell(name: str) -> Any:
        pos = positions[name]
        return values[pos] if pos < len(values) else None

    uan = normalize_uan(cell("uan"))
    if not uan:
        logger.debug("row %d dropped: UAN has no digits", row_number)
        return None

    amounts: dict[str, float] = {}
    for name in AMOUNT_COLUMNS:
        number = to_number(cell(name))
        if math.isnan(number):
            logger.debug("row %d dropped: %s is not numeric (%r)", row_number, name, cell(name))
            return None
        if number < 0:
            logger.debug("row %d dropped: %s is negative (%s)", row_number, name, number)
            return None
        amounts[name] = number

    return ParsedPayrollRow(row_number=row_number, uan=uan, **amounts)


def parse_payroll_sheet(df: pd.DataFrame) -> list[ParsedPayrollRow]:
    """Turn a raw first-sheet DataFrame into validated payroll rows.

    Steps:
    1. Row 0 is the header; normalize every header cell
    2. Skip fully blank body rows (they still count for row numbering)
    3. No remaining data rows -> NoRowsError
    4. Required columns missing -> MissingColumnsError (no partial result)
    5. Parse each row independently; bad rows are dropped

    An empty return value means every data row was rejected.
    """
    if df.shape[0] == 0:
        raise NoRowsError("No rows found in uploaded sheet.")
    positions = _header_positions(df.iloc[0].tolist())

    body: list[tuple[int, list[Any]]] = []
    for offset, (_, raw) in enumerate(df.iloc[1:].iterrows()):
        values = raw.tolist()
        if all(_is_blank(v) for v in values):
            continue
        body.append((offset + FIRST_DATA_ROW, values))

    if not body:
        raise NoRowsError("No rows found in uploaded sheet.")

    missing = [c for c in REQUIRED_COLUMNS if c not in positions]
    if missing:
        raise MissingColumnsError(missing)

    parsed: list[ParsedPayrollRow] = []
    for row_number, values in body:
        row = _parse_row(values, positions, row_number)
        if row is not None:
            parsed.append(row)

    dropped = len(body) - len(parsed)
    if dropped:
        logger.info(f"{dropped} of {len(body)} rows dropped (invalid UAN or amounts)")
    return parsed


def parse_payroll_workbook(source: WorkbookSource) -> list[ParsedPayrollRow]:
    """Read the first sheet of a workbook and return its valid payroll rows."""
    return parse_payroll_sheet(read_first_sheet(source))
