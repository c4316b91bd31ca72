from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from .payroll_row import ImportReportRow, RowStatus

"""ImportReport: ordered row arena with derived counts.

Owned by a single import invocation. Rows keep original sheet order; counts are
computed on read and never stored.
"""

__all__ = [
    "ImportReport",
]


class ImportReport:
    """Ordered list of ImportReportRow addressed by index."""

    def __init__(self, rows: Iterable[ImportReportRow] = ()) -> None:
        self._rows: list[ImportReportRow] = list(rows)
        self._index: dict[int, int] = {}
        for i, r in enumerate(self._rows):
            if r.row_number in self._index:
                raise ValueError(f"duplicate sheet row number: {r.row_number}")
            self._index[r.row_number] = i

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ImportReportRow]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> ImportReportRow:
        return self._rows[index]

    @property
    def rows(self) -> tuple[ImportReportRow, ...]:
        return tuple(self._rows)

    def index_of(self, row_number: int) -> int:
        """Arena index for a sheet row number (KeyError if unknown)."""
        return self._index[row_number]

    def replace(self, index: int, row: ImportReportRow) -> None:
        """Swap in a reconstructed record at a known index."""
        current = self._rows[index]
        if current.row_number != row.row_number:
            raise ValueError(
                f"row number mismatch at index {index}: {current.row_number} != {row.row_number}"
            )
        self._rows[index] = row

    def pending_rows(self) -> list[tuple[int, ImportReportRow]]:
        return [(i, r) for i, r in enumerate(self._rows) if r.status is RowStatus.PENDING]

    def _count(self, status: RowStatus) -> int:
        return sum(1 for r in self._rows if r.status is status)

    @property
    def total(self) -> int:
        return len(self._rows)

    @property
    def success(self) -> int:
        return self._count(RowStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return self._count(RowStatus.FAILURE)

    @property
    def pending(self) -> int:
        return self._count(RowStatus.PENDING)

    def failures(self) -> list[ImportReportRow]:
        return [r for r in self._rows if r.status is RowStatus.FAILURE]

    def to_records(self) -> list[dict[str, Any]]:
        """Plain dicts for tabular display (sheet row, UAN, status, message)."""
        return [
            {
                "row_number": r.row_number,
                "uan": r.uan,
                "status": r.status.value,
                "message": r.message,
                "employee_id": r.employee_id,
            }
            for r in self._rows
        ]
