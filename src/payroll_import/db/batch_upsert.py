from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from ..models.import_report import ImportReport
from ..models.payroll_row import ImportReportRow, PayrollPeriod, RowStatus

"""Batched salary upsert.

Pending report rows are cut into consecutive batches (default 50). Batches run
strictly one after another; inside a batch every upsert call is submitted to a
thread pool at once and the batch is joined before the next starts, so at most
`batch_size` remote calls are ever in flight.

A failed call settles its own row as a failure and nothing else: failures are
row data, never exceptions.
"""

__all__ = [
    "BATCH_SIZE",
    "BatchMetrics",
    "MSG_IMPORTED",
    "MSG_RPC_FAILED",
    "UpsertCall",
    "UpsertResult",
    "iter_batches",
    "settle_row",
    "upsert_in_batches",
]

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
MSG_IMPORTED = "Imported successfully."
MSG_RPC_FAILED = "RPC failed."

# payload -> None on success, remote error text on failure
UpsertCall = Callable[[dict[str, Any]], str | None]

T = TypeVar("T")


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics for one completed batch."""
    batch_index: int  # 0-based
    batch_size: int  # rows submitted in this batch
    succeeded: int
    failed: int
    elapsed_seconds: float  # submit -> last call joined
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class UpsertResult:
    batches: int
    submitted: int


def iter_batches(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most `size` items, in order."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _call_upsert(upsert: UpsertCall, payload: dict[str, Any]) -> str | None:
    """Run one remote call; return None on success or the failure message."""
    try:
        error = upsert(payload)
    except Exception as e:
        logger.debug(f"upsert raised for uan={payload.get('uan')}: {e!r}")
        return str(e) or MSG_RPC_FAILED
    if error is None:
        return None
    return str(error) or MSG_RPC_FAILED


def upsert_in_batches(
    report: ImportReport,
    period: PayrollPeriod,
    upsert: UpsertCall,
    batch_size: int = BATCH_SIZE,
    max_workers: int | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
    progress: Any = None,
) -> UpsertResult:
    """Persist every pending report row through `upsert`.

    Parameters
    ----------
    report: reconciled report; pending rows are settled in place via replace()
    period: target site / month / year stamped on every payload
    upsert: idempotent remote call keyed by (employee, month, year)
    batch_size: rows per batch, also the in-flight ceiling
    max_workers: thread pool size (defaults to batch_size)
    metrics_callback: receives BatchMetrics after each batch is joined.
        Not invoked when there are no pending rows.
    progress: optional object with update(n) (tqdm-like), advanced per batch
    """
    pending = report.pending_rows()
    batches = list(iter_batches(pending, batch_size))
    if not batches:
        return UpsertResult(batches=0, submitted=0)

    workers = max(1, min(max_workers or batch_size, batch_size))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upsert") as pool:
        for batch_index, batch in enumerate(batches):
            start_time = time.time()
            futures = [
                (row, pool.submit(_call_upsert, upsert, row.to_upsert_payload(period)))
                for _, row in batch
            ]
            succeeded = failed = 0
            for row, future in futures:
                settled = settle_row(row, future.result())
                if settled.status is RowStatus.SUCCESS:
                    succeeded += 1
                else:
                    failed += 1
                # outcomes are attributed by sheet row number, not by position in the batch
                report.replace(report.index_of(row.row_number), settled)
            end_time = time.time()

            logger.debug(
                f"batch {batch_index + 1}/{len(batches)} size={len(batch)} ok={succeeded} failed={failed}"
            )
            if metrics_callback is not None:
                metrics_callback(
                    BatchMetrics(
                        batch_index=batch_index,
                        batch_size=len(batch),
                        succeeded=succeeded,
                        failed=failed,
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
            if progress is not None:
                progress.update(len(batch))

    return UpsertResult(batches=len(batches), submitted=len(pending))


def settle_row(row: ImportReportRow, error: str | None) -> ImportReportRow:
    """Settle a pending row from a call result (None = success)."""
    if error is None:
        return row.with_outcome(RowStatus.SUCCESS, MSG_IMPORTED)
    return row.with_outcome(RowStatus.FAILURE, error or MSG_RPC_FAILED)
