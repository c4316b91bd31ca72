from __future__ import annotations

from ..models.import_report import ImportReport

"""SUMMARY line rendering.

Format:
    SUMMARY rows={total} success={success} failed={failed} batches={batches} elapsed_sec={elapsed}

The "SUMMARY " label itself is added by the logging formatter.
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: ImportReport, batches: int, elapsed_seconds: float) -> str:
    """Render the summary content (without the SUMMARY label).

    >>> from payroll_import.models.import_report import ImportReport
    >>> render_summary_line(ImportReport(), 0, 2.0)
    'rows=0 success=0 failed=0 batches=0 elapsed_sec=2'
    """
    return (
        f"rows={report.total} "
        f"success={report.success} "
        f"failed={report.failed} "
        f"batches={batches} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )
