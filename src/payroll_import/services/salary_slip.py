from __future__ import annotations

import calendar
import io
from dataclasses import dataclass

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..models.salary_record import SalaryRecord
from .amount_words import amount_in_words, format_inr

"""Salary slip assembly for a stored salary record.

Two renderings of the same SalarySlip: fixed-width text for terminals, and an
A4 PDF drawn with reportlab for download.
"""

__all__ = [
    "SalarySlip",
    "build_salary_slip",
    "render_slip_pdf",
    "render_slip_text",
]

SLIP_WIDTH = 60


@dataclass(frozen=True)
class SalarySlip:
    company_name: str
    employee_name: str
    uan: str
    site_name: str | None
    period_label: str  # e.g. "March 2025"
    paid_days: float
    earnings: tuple[tuple[str, float], ...]
    deductions: tuple[tuple[str, float], ...]
    gross_earnings: float
    total_deductions: float
    net_payable: float
    amount_in_words: str


def _period_label(month: str, year: int) -> str:
    try:
        return f"{calendar.month_name[int(month)]} {year}"
    except (ValueError, IndexError):
        return f"{month}-{year}"


def build_salary_slip(record: SalaryRecord, company_name: str = "HRM Portal") -> SalarySlip:
    """Build slip figures from a salary record.

    Net payable is taken from the stored record, which is the system of record.
    """
    earnings = (
        ("Basic", record.basic),
        ("HRA", record.hra),
        ("Allowances", record.allowances),
    )
    deductions = (("Deductions", record.deductions),)
    return SalarySlip(
        company_name=company_name,
        employee_name=record.employee_name,
        uan=record.uan,
        site_name=record.site_name,
        period_label=_period_label(record.month, record.year),
        paid_days=record.paid_days,
        earnings=earnings,
        deductions=deductions,
        gross_earnings=sum(v for _, v in earnings),
        total_deductions=sum(v for _, v in deductions),
        net_payable=record.net_payable,
        amount_in_words=amount_in_words(record.net_payable),
    )


def _line(label: str, value: str) -> str:
    return f"{label}{value.rjust(SLIP_WIDTH - len(label))}"


def _days(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def render_slip_text(slip: SalarySlip) -> str:
    rule = "-" * SLIP_WIDTH
    lines = [
        slip.company_name.center(SLIP_WIDTH).rstrip(),
        f"Salary Slip for {slip.period_label}".center(SLIP_WIDTH).rstrip(),
        rule,
        _line("Employee", slip.employee_name),
        _line("UAN", slip.uan),
    ]
    if slip.site_name:
        lines.append(_line("Site", slip.site_name))
    lines.append(_line("Paid Days", _days(slip.paid_days)))
    lines.append(rule)
    lines.append("Earnings")
    lines.extend(_line(f"  {label}", format_inr(value)) for label, value in slip.earnings)
    lines.append(_line("Gross Earnings", format_inr(slip.gross_earnings)))
    lines.append("Deductions")
    lines.extend(_line(f"  {label}", format_inr(value)) for label, value in slip.deductions)
    lines.append(_line("Total Deductions", format_inr(slip.total_deductions)))
    lines.append(rule)
    lines.append(_line("Net Payable", format_inr(slip.net_payable)))
    lines.append(f"Amount in words: {slip.amount_in_words}")
    return "\n".join(lines)


def render_slip_pdf(slip: SalarySlip) -> bytes:
    """Draw the slip on one A4 page and return the PDF bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Salary Slip {slip.period_label} {slip.uan}")
    width, height = A4

    margin = 18 * mm
    x0 = margin
    mid = width / 2
    y = height - margin

    c.setFont("Helvetica-Bold", 14)
    c.drawCentredString(mid, y, slip.company_name)
    y -= 16
    c.setFont("Helvetica", 11)
    c.drawCentredString(mid, y, f"Salary Slip for {slip.period_label}")
    y -= 10
    c.line(x0, y, width - margin, y)
    y -= 16

    def label_value(label: str, value: str) -> None:
        nonlocal y
        c.setFont("Helvetica-Bold", 10)
        c.drawString(x0, y, label)
        c.setFont("Helvetica", 10)
        c.drawString(x0 + 110, y, value)
        y -= 13

    label_value("Employee:", slip.employee_name)
    label_value("UAN:", slip.uan)
    if slip.site_name:
        label_value("Site:", slip.site_name)
    label_value("Paid Days:", _days(slip.paid_days))

    y -= 4
    c.line(x0, y, width - margin, y)
    y -= 16

    c.setFont("Helvetica-Bold", 11)
    c.drawString(x0, y, "EARNINGS")
    c.drawString(mid + 10, y, "DEDUCTIONS")
    y -= 14

    c.setFont("Helvetica", 10)
    y_left = y
    for label, value in slip.earnings:
        c.drawString(x0, y_left, label)
        c.drawRightString(mid - 10, y_left, format_inr(value))
        y_left -= 13
    y_right = y
    for label, value in slip.deductions:
        c.drawString(mid + 10, y_right, label)
        c.drawRightString(width - margin, y_right, format_inr(value))
        y_right -= 13

    y = min(y_left, y_right) - 6
    c.line(x0, y, width - margin, y)
    y -= 14

    c.setFont("Helvetica-Bold", 10)
    c.drawString(x0, y, "Gross Earnings")
    c.drawRightString(mid - 10, y, format_inr(slip.gross_earnings))
    c.drawString(mid + 10, y, "Total Deductions")
    c.drawRightString(width - margin, y, format_inr(slip.total_deductions))

    y -= 20
    c.setFont("Helvetica-Bold", 12)
    c.drawString(x0, y, "NET PAYABLE (Rs.)")
    c.drawRightString(width - margin, y, format_inr(slip.net_payable))
    y -= 16
    c.setFont("Helvetica", 10)
    c.drawString(x0, y, f"Amount in words: {slip.amount_in_words}")

    c.setFont("Helvetica", 8)
    c.setFillColor(colors.grey)
    c.drawRightString(width - margin, 24 * mm, "Authorized Signature")

    c.showPage()
    c.save()
    return buf.getvalue()
